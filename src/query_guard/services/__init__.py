"""Service layer for business logic.

This layer contains the core business logic and orchestration.
Services depend on protocols (interfaces), not concrete implementations,
making them testable and flexible.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access)

Usage:
    ```python
    from query_guard.services import AdmissionGateway, CostLedger, RateLimiter

    limiter = RateLimiter.create(store=RedisRateLimitRepository.create())
    ledger = CostLedger.create(store=RedisCostRepository.create())
    gateway = AdmissionGateway(rate_limiter=limiter, cost_ledger=ledger, upstream=upstream)
    ```
"""

from .admission_gateway import AdmissionGateway
from .cost_ledger import CostLedger
from .query_validator import QueryValidator
from .rate_limiter import RateLimiter
from .semantic_cache import SemanticCache

__all__ = [
    "AdmissionGateway",
    "CostLedger",
    "QueryValidator",
    "RateLimiter",
    "SemanticCache",
]
