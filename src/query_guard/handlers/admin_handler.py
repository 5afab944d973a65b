"""HTTP handlers for operator endpoints.

Handlers convert between DTOs (API contracts) and service calls.
They handle HTTP concerns like status codes and error translation.
"""

import redis
from fastapi import HTTPException, status

from query_guard.dto import (
    AdminActionResponse,
    CacheStatsResponse,
    CostStatsResponse,
    HealthCache,
    HealthCost,
    HealthQueries,
    HealthResponse,
    RateLimitLimits,
    RateLimitOverviewResponse,
    RateLimitResetResponse,
    RateLimitStatusResponse,
    WindowStatusResponse,
)
from query_guard.entities import CacheStatsEntity, CostStats, RateLimitStatus
from query_guard.errors import CacheUnavailable, RateLimiterUnavailable
from query_guard.services import CostLedger, RateLimiter, SemanticCache

COST_RESET_WARNING = "This resets the cost budget protection. Monitor costs carefully."
CACHE_CLEAR_WARNING = "New queries will require a full upstream call until the cache rebuilds."


def _cost_response(stats: CostStats) -> CostStatsResponse:
    return CostStatsResponse(
        date=stats.day,
        current_cost=float(stats.current_cost),
        daily_limit=float(stats.daily_limit),
        remaining_budget=float(stats.remaining_budget),
        query_count=stats.query_count,
        remaining_queries=stats.remaining_queries,
        utilization_percent=stats.utilization_percent,
    )


def _cache_response(stats: CacheStatsEntity) -> CacheStatsResponse:
    return CacheStatsResponse(
        cached_queries=stats.cached_queries,
        cache_hits=stats.cache_hits,
        cache_misses=stats.cache_misses,
        hit_rate=stats.hit_rate,
        similarity_threshold=stats.similarity_threshold,
        capacity=stats.capacity,
        eviction_policy=stats.eviction_policy,
        ttl_seconds=stats.ttl_seconds,
    )


def _rate_limit_response(rl: RateLimitStatus) -> RateLimitStatusResponse:
    return RateLimitStatusResponse(
        client=rl.client,
        minute=WindowStatusResponse(
            count=rl.minute.count, limit=rl.minute.limit, reset_in_seconds=rl.minute.reset_in_seconds
        ),
        day=WindowStatusResponse(count=rl.day.count, limit=rl.day.limit, reset_in_seconds=rl.day.reset_in_seconds),
        exceeded=rl.exceeded,
    )


def _unavailable(what: str, exc: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"{what} unavailable: {exc}",
    )


class AdminHandler:
    """HTTP handlers for cost, rate limit and cache administration.

    The cache is optional; its endpoints answer 404 when it is disabled.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        cost_ledger: CostLedger,
        cache: SemanticCache | None = None,
    ) -> None:
        self._limiter = rate_limiter
        self._ledger = cost_ledger
        self._cache = cache

    def _require_cache(self) -> SemanticCache:
        if self._cache is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Semantic cache is disabled",
            )
        return self._cache

    async def cost_today(self) -> CostStatsResponse:
        """Handle GET /cost/today requests."""
        try:
            return _cost_response(self._ledger.get_stats())
        except redis.RedisError as e:
            raise _unavailable("Cost ledger", e) from e

    async def reset_cost(self) -> AdminActionResponse:
        """Handle POST /cost/reset requests."""
        try:
            self._ledger.reset_daily()
        except redis.RedisError as e:
            raise _unavailable("Cost ledger", e) from e
        return AdminActionResponse(message="Daily cost reset successfully", warning=COST_RESET_WARNING)

    async def rate_limit_overview(self) -> RateLimitOverviewResponse:
        """Handle GET /ratelimit/status requests.

        Raises:
            HTTPException: 503 if the counter store is unreachable
        """
        try:
            active = self._limiter.active_clients()
        except RateLimiterUnavailable as e:
            raise _unavailable("Rate limiter", e) from e

        return RateLimitOverviewResponse(
            active_clients_last_minute=active.minute,
            active_clients_today=active.day,
            limits=RateLimitLimits(per_minute=active.limit_per_minute, per_day=active.limit_per_day),
        )

    async def rate_limit_for(self, client: str) -> RateLimitStatusResponse:
        """Handle GET /ratelimit/ip/{client} requests."""
        try:
            return _rate_limit_response(self._limiter.status(client))
        except RateLimiterUnavailable as e:
            raise _unavailable("Rate limiter", e) from e

    async def reset_rate_limits(self) -> RateLimitResetResponse:
        """Handle POST /ratelimit/reset requests."""
        try:
            deleted = self._limiter.reset_all()
        except redis.RedisError as e:
            raise _unavailable("Rate limiter", e) from e
        return RateLimitResetResponse(message="Rate limits reset successfully", keys_deleted=deleted)

    async def cache_stats(self) -> CacheStatsResponse:
        """Handle GET /cache/semantic/stats requests."""
        cache = self._require_cache()
        try:
            return _cache_response(cache.get_stats())
        except CacheUnavailable as e:
            raise _unavailable("Semantic cache", e) from e

    async def clear_cache(self) -> AdminActionResponse:
        """Handle POST /cache/semantic/clear requests."""
        cache = self._require_cache()
        try:
            cache.clear()
        except CacheUnavailable as e:
            raise _unavailable("Semantic cache", e) from e
        return AdminActionResponse(message="Semantic cache cleared successfully", warning=CACHE_CLEAR_WARNING)

    async def health(self) -> HealthResponse:
        """Handle GET /health requests.

        Cost figures are always reported; an unreachable cache
        marks the service as degraded.
        """
        try:
            cost = self._ledger.get_stats()
        except redis.RedisError as e:
            raise _unavailable("Cost ledger", e) from e
        health_status = "healthy"

        cache_summary: HealthCache | None = None
        if self._cache is not None:
            try:
                stats = self._cache.get_stats()
                cache_summary = HealthCache(
                    cached_queries=stats.cached_queries,
                    hit_rate=stats.hit_rate,
                    hits=stats.cache_hits,
                    misses=stats.cache_misses,
                )
            except CacheUnavailable:
                health_status = "degraded"

        return HealthResponse(
            status=health_status,
            cost=HealthCost(
                current=float(cost.current_cost),
                limit=float(cost.daily_limit),
                remaining=float(cost.remaining_budget),
                utilization_percent=cost.utilization_percent,
            ),
            queries=HealthQueries(today=cost.query_count, remaining=cost.remaining_queries),
            semantic_cache=cache_summary,
        )
