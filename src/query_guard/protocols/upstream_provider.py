"""Upstream provider protocol.

The paid model behind the gateway (chat completion, structured
extraction). The gateway only needs a payload and the actual cost back.
"""

from typing import Protocol, runtime_checkable

from query_guard.entities import UpstreamResult


@runtime_checkable
class UpstreamProvider(Protocol):
    """Protocol for pay-per-call upstream services."""

    @property
    def name(self) -> str:
        """Provider identifier used in logs."""
        ...

    async def complete(self, query: str) -> UpstreamResult:
        """Answer a query.

        Args:
            query: The sanitized user query

        Returns:
            UpstreamResult with the response payload and its actual cost

        Raises:
            Exception: Any failure; the gateway treats it as upstream unavailable
        """
        ...
