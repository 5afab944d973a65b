"""Exceptions raised by the admission layer.

Rate-limited and budget-exceeded requests are normal outcomes and are
reported through AdmissionResult, not raised. The exceptions below mark
collaborator failures that the gateway recovers from locally.
"""


class QueryGuardError(Exception):
    """Base class for all query_guard errors."""


class RateLimiterUnavailable(QueryGuardError):
    """Raised when the rate-limit store cannot be reached.

    The limiter fails closed: callers must reject the request.
    """


class CacheUnavailable(QueryGuardError):
    """Raised when the semantic cache store or the embedder cannot be reached."""


class UpstreamUnavailable(QueryGuardError):
    """Raised when the upstream provider call fails or times out."""


class InvalidQuery(QueryGuardError):
    """Raised when a query fails validation."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)
