"""Query Guard - cost protection and semantic caching for paid LLM calls.

This package provides a layered architecture for admitting client queries
to a pay-per-call upstream:

Layers:
    - protocols: Interface contracts (CacheStore, RateLimitStore, CostStore, ...)
    - repositories: Data access implementations (Redis, in-memory, HTTP providers)
    - services: Business logic (RateLimiter, CostLedger, SemanticCache, AdmissionGateway)
    - handlers: HTTP endpoint handlers
    - dto: Data transfer objects (API contracts)
    - entities: Domain models (internal)

Usage:
    ```python
    from query_guard.services import AdmissionGateway

    result = await gateway.admit("203.0.113.5", "fruity ethiopian coffee")
    ```

For HTTP API:
    ```python
    from query_guard.api.app import app
    ```
"""

from query_guard.config import get_redis_client, settings
from query_guard.entities import AdmissionOutcome, AdmissionResult, CacheMatchEntity, CostStats, RateLimitStatus
from query_guard.errors import CacheUnavailable, InvalidQuery, QueryGuardError, RateLimiterUnavailable
from query_guard.protocols import CacheStore, CostStore, EmbeddingProvider, RateLimitStore, UpstreamProvider
from query_guard.repositories import (
    InMemoryCacheRepository,
    RedisCacheRepository,
    RedisCostRepository,
    RedisRateLimitRepository,
)
from query_guard.services import AdmissionGateway, CostLedger, QueryValidator, RateLimiter, SemanticCache

__all__ = [
    # Configuration
    "settings",
    "get_redis_client",
    # Protocols (interfaces)
    "CacheStore",
    "CostStore",
    "EmbeddingProvider",
    "RateLimitStore",
    "UpstreamProvider",
    # Services (business logic)
    "AdmissionGateway",
    "CostLedger",
    "QueryValidator",
    "RateLimiter",
    "SemanticCache",
    # Repositories (data access)
    "InMemoryCacheRepository",
    "RedisCacheRepository",
    "RedisCostRepository",
    "RedisRateLimitRepository",
    # Entities (domain models)
    "AdmissionOutcome",
    "AdmissionResult",
    "CacheMatchEntity",
    "CostStats",
    "RateLimitStatus",
    # Errors
    "QueryGuardError",
    "RateLimiterUnavailable",
    "CacheUnavailable",
    "InvalidQuery",
]
