"""Admission gateway in front of the paid upstream provider.

Every client query passes, in order: the rate limiter, validation, the
semantic cache, the cost ledger and finally the upstream call. Each step
can end the request with an AdmissionResult; no collaborator failure is
raised to the caller.
"""

import asyncio
import logging
from decimal import Decimal

import redis

from query_guard.config import settings
from query_guard.entities import AdmissionOutcome, AdmissionResult, UpstreamResult
from query_guard.errors import CacheUnavailable, InvalidQuery, RateLimiterUnavailable, UpstreamUnavailable
from query_guard.protocols import UpstreamProvider
from query_guard.services.cost_ledger import CostLedger
from query_guard.services.query_validator import QueryValidator
from query_guard.services.rate_limiter import RateLimiter
from query_guard.services.semantic_cache import SemanticCache

logger = logging.getLogger(__name__)

RATE_LIMITED_MESSAGE = "Too many requests. Please slow down."
BUDGET_EXCEEDED_MESSAGE = "Daily query limit reached. Please try again tomorrow."
UPSTREAM_UNAVAILABLE_MESSAGE = "The assistant is temporarily unavailable. Please try again later."
LIMITER_UNAVAILABLE_MESSAGE = "Service temporarily unavailable. Please try again later."


class AdmissionGateway:
    """Decides whether a query may reach the upstream and records its cost.

    The cache is optional: pass ``cache=None`` to always go upstream.
    Upstream calls run under a semaphore bounding concurrent paid calls
    and a per-call timeout.

    Example:
        ```python
        gateway = AdmissionGateway(
            rate_limiter=limiter,
            cost_ledger=ledger,
            upstream=ChatUpstreamProvider.create(),
            cache=cache,
        )
        result = await gateway.admit("203.0.113.5", "fruity ethiopian coffee")
        ```
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        cost_ledger: CostLedger,
        upstream: UpstreamProvider,
        cache: SemanticCache | None = None,
        validator: QueryValidator | None = None,
        max_concurrency: int | None = None,
        timeout: float | None = None,
    ) -> None:
        self._limiter = rate_limiter
        self._ledger = cost_ledger
        self._upstream = upstream
        self._cache = cache
        self._validator = validator or QueryValidator()
        if max_concurrency is None:
            max_concurrency = settings.upstream_max_concurrency
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._timeout = timeout if timeout is not None else settings.upstream_timeout

    @property
    def cache(self) -> SemanticCache | None:
        return self._cache

    async def admit(self, client_id: str, query: str, *, cacheable: bool = True) -> AdmissionResult:
        """Run one query through every guard.

        Args:
            client_id: Rate limit key (usually the client IP)
            query: Raw query text
            cacheable: Skip the semantic cache entirely when False

        Returns:
            AdmissionResult describing the outcome
        """
        result = await self._admit(client_id, query, cacheable)
        log = logger.info if result.outcome.is_success else logger.warning
        log(
            "Query from %s: %s%s",
            client_id,
            result.outcome.value,
            f" (similarity={result.similarity:.3f})" if result.similarity is not None else "",
        )
        return result

    async def _admit(self, client_id: str, query: str, cacheable: bool) -> AdmissionResult:
        try:
            allowed, status = self._limiter.check_and_increment(client_id)
        except RateLimiterUnavailable:
            return AdmissionResult(
                outcome=AdmissionOutcome.RATE_LIMITER_UNAVAILABLE,
                explanation=LIMITER_UNAVAILABLE_MESSAGE,
                error_code=AdmissionOutcome.RATE_LIMITER_UNAVAILABLE.value,
            )
        if not allowed:
            return AdmissionResult(
                outcome=AdmissionOutcome.RATE_LIMITED,
                explanation=RATE_LIMITED_MESSAGE,
                error_code=AdmissionOutcome.RATE_LIMITED.value,
                retry_after=max(status.retry_after, 1),
            )

        try:
            query = self._validator.clean(query)
        except InvalidQuery as exc:
            return AdmissionResult(
                outcome=AdmissionOutcome.INVALID_QUERY,
                explanation=exc.reason,
                error_code=AdmissionOutcome.INVALID_QUERY.value,
            )

        embedding: list[float] | None = None
        if cacheable and self._cache is not None:
            try:
                embedding = await self._cache.embed(query)
                match = self._cache.lookup(embedding)
            except (CacheUnavailable, ValueError) as exc:
                logger.warning("Semantic cache unavailable, continuing without it: %s", exc)
                embedding = None
                match = None
            if match is not None:
                return AdmissionResult(
                    outcome=AdmissionOutcome.CACHE_HIT,
                    explanation=str(match.response.get("explanation", "")),
                    payload=match.response,
                    cache_hit=True,
                    similarity=match.similarity,
                )

        try:
            ok, reserved = self._ledger.reserve()
        except (redis.RedisError, OSError) as exc:
            logger.error("Cost ledger unreachable, refusing paid call: %s", exc)
            return AdmissionResult(
                outcome=AdmissionOutcome.BUDGET_EXCEEDED,
                explanation=BUDGET_EXCEEDED_MESSAGE,
                error_code=AdmissionOutcome.BUDGET_EXCEEDED.value,
            )
        if not ok:
            logger.error(
                "DAILY COST BUDGET EXCEEDED: $%s of $%s", reserved.current_cost, reserved.daily_limit
            )
            return AdmissionResult(
                outcome=AdmissionOutcome.BUDGET_EXCEEDED,
                explanation=BUDGET_EXCEEDED_MESSAGE,
                error_code=AdmissionOutcome.BUDGET_EXCEEDED.value,
            )

        try:
            upstream = await asyncio.wait_for(self._call_upstream(query), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.error("Upstream %s timed out after %ss", self._upstream.name, self._timeout)
            return self._upstream_unavailable()
        except UpstreamUnavailable as exc:
            logger.error("%s", exc)
            return self._upstream_unavailable()
        except Exception as exc:  # third-party providers raise untyped errors
            logger.error("Upstream %s failed: %s", self._upstream.name, exc)
            return self._upstream_unavailable()

        cost = Decimal(upstream.cost)
        try:
            self._ledger.commit(cost, day=reserved.day)
        except (redis.RedisError, OSError) as exc:
            logger.error("Failed to record upstream cost $%s: %s", cost, exc)

        if embedding is not None and self._cache is not None:
            try:
                self._cache.store(query, embedding, upstream.payload)
            except (CacheUnavailable, ValueError) as exc:
                logger.warning("Failed to store response in semantic cache: %s", exc)

        return AdmissionResult(
            outcome=AdmissionOutcome.ANSWERED,
            explanation=str(upstream.payload.get("explanation", "")),
            payload=upstream.payload,
            cost=cost,
        )

    async def _call_upstream(self, query: str) -> UpstreamResult:
        # The deadline covers waiting for a slot as well as the call itself.
        async with self._semaphore:
            return await self._upstream.complete(query)

    @staticmethod
    def _upstream_unavailable() -> AdmissionResult:
        return AdmissionResult(
            outcome=AdmissionOutcome.UPSTREAM_UNAVAILABLE,
            explanation=UPSTREAM_UNAVAILABLE_MESSAGE,
            error_code=AdmissionOutcome.UPSTREAM_UNAVAILABLE.value,
        )
