"""Cache storage protocol.

Defines the interface for any backend that can hold query embeddings and
answer nearest-neighbour lookups for the semantic cache.

Implementations:
- Redis hashes with a sorted-set eviction index (default)
- In-process copy-on-write list (single worker, tests)

A linear scan is adequate at the intended scale; an approximate
nearest-neighbour index can replace it behind the same methods.
"""

from typing import Any, Protocol, runtime_checkable

from query_guard.entities import CacheEntryEntity


@runtime_checkable
class CacheStore(Protocol):
    """Protocol for semantic cache storage backends.

    Similar to Go's interface pattern - any type that implements these
    methods satisfies the protocol, no explicit inheritance needed.

    Capacity, TTL and eviction policy are fixed when the store is built.
    """

    @property
    def capacity(self) -> int:
        """Maximum number of entries held before eviction."""
        ...

    @property
    def eviction_policy(self) -> str:
        """Eviction policy name ("lru" or "lfu")."""
        ...

    @property
    def ttl(self) -> int:
        """Entry time-to-live in seconds."""
        ...

    def store(
        self,
        query: str,
        embedding: list[float],
        response: dict[str, Any],
    ) -> str:
        """Store a cache entry, evicting one entry first when full.

        Args:
            query: The original query text
            embedding: The embedding vector for the query
            response: The payload to cache

        Returns:
            The storage key for the entry
        """
        ...

    def find_by_vector(
        self,
        vector: list[float],
        threshold: float,
    ) -> tuple[CacheEntryEntity, float] | None:
        """Find the most similar entry at or above the similarity threshold.

        Args:
            vector: The query embedding vector
            threshold: Minimum cosine similarity for a match

        Returns:
            Tuple (entry, similarity) for the best match, or None
        """
        ...

    def record_hit(self, key: str) -> int:
        """Count a hit against an entry and the global hit counter.

        Args:
            key: The storage key of the matched entry

        Returns:
            The entry's hit count after the increment
        """
        ...

    def record_miss(self) -> None:
        """Count a miss against the global miss counter."""
        ...

    def get_counters(self) -> tuple[int, int]:
        """Return the global (hits, misses) counters."""
        ...

    def clear_all(self) -> int:
        """Remove all entries and reset the hit/miss counters.

        Returns:
            Number of entries deleted
        """
        ...

    def count_all(self) -> int:
        """Count live entries in the cache."""
        ...

    def health_check(self) -> bool:
        """Check if the store is accessible."""
        ...
