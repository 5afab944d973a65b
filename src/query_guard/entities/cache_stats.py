"""Cache statistics entity."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CacheStatsEntity:
    """Derived semantic cache statistics."""

    cached_queries: int
    cache_hits: int
    cache_misses: int
    similarity_threshold: float
    capacity: int
    eviction_policy: str
    ttl_seconds: int

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate (0.0 when there were no lookups)."""
        total = self.cache_hits + self.cache_misses
        if total == 0:
            return 0.0
        return self.cache_hits / total
