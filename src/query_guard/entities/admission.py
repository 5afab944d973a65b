"""Admission result entities."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any


class AdmissionOutcome(str, Enum):
    """Terminal state of one admitted (or refused) query."""

    ANSWERED = "answered"
    CACHE_HIT = "cache_hit"
    RATE_LIMITED = "rate_limited"
    BUDGET_EXCEEDED = "budget_exceeded"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    RATE_LIMITER_UNAVAILABLE = "rate_limiter_unavailable"
    INVALID_QUERY = "invalid_query"

    @property
    def is_success(self) -> bool:
        return self in (AdmissionOutcome.ANSWERED, AdmissionOutcome.CACHE_HIT)


@dataclass(frozen=True)
class AdmissionResult:
    """User-facing result of AdmissionGateway.admit.

    Attributes:
        outcome: What happened to the query
        explanation: Message safe to show to the end user
        payload: Upstream (or cached) response, None unless successful
        error_code: Machine-readable code for failed outcomes
        cache_hit: Whether the payload came from the semantic cache
        similarity: Similarity of the cache match, if any
        retry_after: Seconds the client should wait (rate limited only)
        cost: Actual upstream cost charged for this query
    """

    outcome: AdmissionOutcome
    explanation: str
    payload: dict[str, Any] | None = None
    error_code: str | None = None
    cache_hit: bool = False
    similarity: float | None = None
    retry_after: int | None = None
    cost: Decimal | None = None


@dataclass(frozen=True)
class UpstreamResult:
    """Response returned by an upstream provider.

    Attributes:
        payload: Response body to hand back to the client and cache
        cost: Actual cost of the call
    """

    payload: dict[str, Any]
    cost: Decimal
