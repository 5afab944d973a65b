"""Upstream adapter for OpenAI-compatible chat completion APIs.

Supports a real mode (forwarding to the configured endpoint) and a stub
mode that returns a canned answer when no API key is configured, so the
gateway can run end to end without credentials.
"""

import logging
import uuid
from decimal import Decimal
from typing import Any

import httpx

from query_guard.config import settings
from query_guard.entities import UpstreamResult
from query_guard.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

_STUB_ANSWER = (
    "This is a stub answer from the gateway. "
    "Configure an upstream API key to get real completions."
)

_SYSTEM_PROMPT = "You are a helpful coffee recommendation assistant. Answer concisely."


class ChatUpstreamProvider:
    """OpenAI-compatible chat completion client.

    Satisfies the UpstreamProvider protocol. Cost per call comes from token
    usage when per-1k prices are configured, else the flat per-query cost.
    """

    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        cost_per_query: Decimal | None = None,
        input_cost_per_1k: Decimal | None = None,
        output_cost_per_1k: Decimal | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = (base_url or settings.upstream_base_url).rstrip("/")
        self._model = model or settings.upstream_model
        self._api_key = api_key if api_key is not None else settings.upstream_api_key
        self._timeout = timeout if timeout is not None else settings.upstream_timeout
        self._cost_per_query = cost_per_query if cost_per_query is not None else settings.cost_per_query
        self._input_cost = input_cost_per_1k if input_cost_per_1k is not None else settings.upstream_input_cost_per_1k
        self._output_cost = (
            output_cost_per_1k if output_cost_per_1k is not None else settings.upstream_output_cost_per_1k
        )
        self._client: httpx.AsyncClient | None = http_client

    @classmethod
    def create(cls) -> "ChatUpstreamProvider":
        """Factory method to create ChatUpstreamProvider from settings."""
        return cls()

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    @property
    def name(self) -> str:
        return "stub" if self.is_stub else self._model

    @property
    def is_stub(self) -> bool:
        return not self._api_key

    def price(self, prompt_tokens: int, completion_tokens: int) -> Decimal:
        """Actual cost of a call from its token usage."""
        if self._input_cost is None or self._output_cost is None:
            return self._cost_per_query
        return (
            Decimal(prompt_tokens) / 1000 * self._input_cost
            + Decimal(completion_tokens) / 1000 * self._output_cost
        )

    async def complete(self, query: str) -> UpstreamResult:
        """Answer a query.

        Raises:
            UpstreamUnavailable: If the provider is unreachable or returns non-2xx
        """
        if self.is_stub:
            return self._stub_result(query)

        url = f"{self._base_url}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": query},
            ],
        }

        try:
            resp = await self.client.post(url, json=payload, headers=headers)
            resp.raise_for_status()
            data: dict[str, Any] = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamUnavailable(f"{self.name} request failed: {exc}") from exc

        choice = (data.get("choices") or [{}])[0]
        usage = data.get("usage") or {}
        prompt_tokens = int(usage.get("prompt_tokens", 0))
        completion_tokens = int(usage.get("completion_tokens", 0))

        return UpstreamResult(
            payload={
                "id": data.get("id"),
                "model": data.get("model", self._model),
                "explanation": choice.get("message", {}).get("content", ""),
                "usage": {
                    "prompt_tokens": prompt_tokens,
                    "completion_tokens": completion_tokens,
                },
            },
            cost=self.price(prompt_tokens, completion_tokens),
        )

    def _stub_result(self, query: str) -> UpstreamResult:
        prompt_tokens = len(query.split())
        completion_tokens = len(_STUB_ANSWER.split())
        return UpstreamResult(
            payload={
                "id": f"stub-{uuid.uuid4().hex[:8]}",
                "model": "stub",
                "explanation": _STUB_ANSWER,
                "usage": {
                    "prompt_tokens": prompt_tokens,
                    "completion_tokens": completion_tokens,
                },
            },
            cost=self.price(prompt_tokens, completion_tokens),
        )

    async def close(self) -> None:
        """Close the async HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
