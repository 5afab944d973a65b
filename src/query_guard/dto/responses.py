"""Response DTOs for API endpoints."""

import datetime
from typing import Any

from pydantic import BaseModel, Field


class CostStatsResponse(BaseModel):
    """Response DTO for today's cost ledger entry."""

    date: datetime.date = Field(..., description="UTC day of the ledger entry")
    current_cost: float = Field(..., description="Spend so far today", ge=0.0)
    daily_limit: float = Field(..., description="Maximum spend per UTC day", ge=0.0)
    remaining_budget: float = Field(..., description="max(0, limit - spend)", ge=0.0)
    query_count: int = Field(..., description="Paid queries answered today", ge=0)
    remaining_queries: int | None = Field(
        None,
        description="Paid queries still allowed today, null when unbounded",
    )
    utilization_percent: float = Field(..., description="Spend as a percentage of the limit")


class WindowStatusResponse(BaseModel):
    """Counter state for one rate limit window."""

    count: int = Field(..., ge=0)
    limit: int = Field(..., ge=0)
    reset_in_seconds: int = Field(..., description="Seconds until the window expires", ge=0)


class RateLimitStatusResponse(BaseModel):
    """Response DTO for one client's rate limit counters."""

    client: str
    minute: WindowStatusResponse
    day: WindowStatusResponse
    exceeded: bool = Field(..., description="Whether the client is currently rate limited")


class RateLimitLimits(BaseModel):
    per_minute: int
    per_day: int


class RateLimitOverviewResponse(BaseModel):
    """Response DTO for the rate limiter overview."""

    active_clients_last_minute: int = Field(..., ge=0)
    active_clients_today: int = Field(..., ge=0)
    limits: RateLimitLimits


class RateLimitResetResponse(BaseModel):
    message: str
    keys_deleted: int = Field(..., description="Number of counter keys removed", ge=0)


class AdminActionResponse(BaseModel):
    """Response DTO for destructive admin actions."""

    message: str
    warning: str | None = None


class CacheStatsResponse(BaseModel):
    """Response DTO for semantic cache statistics."""

    cached_queries: int = Field(..., description="Live entries in the cache", ge=0)
    cache_hits: int = Field(..., ge=0)
    cache_misses: int = Field(..., ge=0)
    hit_rate: float = Field(..., description="hits / (hits + misses), 0 when no lookups", ge=0.0, le=1.0)
    similarity_threshold: float = Field(..., ge=0.0, le=1.0)
    capacity: int = Field(..., ge=1)
    eviction_policy: str
    ttl_seconds: int = Field(..., ge=0)


class HealthCost(BaseModel):
    current: float
    limit: float
    remaining: float
    utilization_percent: float


class HealthQueries(BaseModel):
    today: int
    remaining: int | None = None


class HealthCache(BaseModel):
    cached_queries: int
    hit_rate: float
    hits: int
    misses: int


class HealthResponse(BaseModel):
    """Response DTO for the admin health summary."""

    status: str = Field(..., description="'healthy' or 'degraded'")
    cost: HealthCost
    queries: HealthQueries
    semantic_cache: HealthCache | None = Field(
        None,
        description="Cache summary, null when the cache is disabled or unreachable",
    )


class QueryResponse(BaseModel):
    """Response DTO for the chatbot query endpoint."""

    outcome: str = Field(..., description="answered, cache_hit, budget_exceeded, ...")
    explanation: str = Field(..., description="Message safe to show to the end user")
    payload: dict[str, Any] | None = Field(None, description="Upstream or cached response")
    error_code: str | None = None
    cache_hit: bool = False
    similarity: float | None = None
    cost: float | None = Field(None, description="Actual upstream cost charged for this query")
