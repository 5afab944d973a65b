"""Data Transfer Objects for API contracts.

These Pydantic models define the external API contract.
They are used for request/response validation and serialization.

Internal domain logic should use entities from the entities package.
"""

from .requests import QueryRequest
from .responses import (
    AdminActionResponse,
    CacheStatsResponse,
    CostStatsResponse,
    HealthCache,
    HealthCost,
    HealthQueries,
    HealthResponse,
    QueryResponse,
    RateLimitLimits,
    RateLimitOverviewResponse,
    RateLimitResetResponse,
    RateLimitStatusResponse,
    WindowStatusResponse,
)

__all__ = [
    "QueryRequest",
    "AdminActionResponse",
    "CacheStatsResponse",
    "CostStatsResponse",
    "HealthCache",
    "HealthCost",
    "HealthQueries",
    "HealthResponse",
    "QueryResponse",
    "RateLimitLimits",
    "RateLimitOverviewResponse",
    "RateLimitResetResponse",
    "RateLimitStatusResponse",
    "WindowStatusResponse",
]
