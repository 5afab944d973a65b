"""Semantic cache service.

This service orchestrates cache operations by coordinating the store
(data access) and the embedding provider (vector generation). Lookups and
stores take a precomputed embedding so one query is embedded only once
per request.
"""

import logging
from typing import Any

import redis

from query_guard.config import settings
from query_guard.entities import CacheMatchEntity, CacheStatsEntity
from query_guard.errors import CacheUnavailable
from query_guard.protocols import CacheStore, EmbeddingProvider

logger = logging.getLogger(__name__)

_STORE_ERRORS = (redis.RedisError, OSError)


class SemanticCache:
    """Nearest-neighbour cache of query responses.

    This service depends on PROTOCOLS, not concrete implementations:
    - CacheStore: Redis or in-memory
    - EmbeddingProvider: local sentence-transformers, Ollama, etc.

    A lookup is a hit when the best cosine similarity is at or above the
    threshold. Store failures surface as CacheUnavailable so callers can
    carry on without the cache.

    Example:
        ```python
        cache = SemanticCache.create(
            repository=RedisCacheRepository.create(),
            embedding_provider=LocalEmbeddingProvider.create(),
        )
        vector = await cache.embed("fruity ethiopian coffee")
        match = cache.lookup(vector)
        ```
    """

    def __init__(
        self,
        repository: CacheStore,
        embedding_provider: EmbeddingProvider | None = None,
        similarity_threshold: float | None = None,
    ) -> None:
        """Initialize the semantic cache.

        Args:
            repository: Cache storage backend (required).
            embedding_provider: Embedding generation service, used by embed().
            similarity_threshold: Minimum cosine similarity for a hit (0-1). Defaults to settings.
        """
        self._repository = repository
        self._embeddings = embedding_provider
        threshold = settings.cache_similarity_threshold if similarity_threshold is None else similarity_threshold
        self._validate_threshold(threshold)
        self._threshold = threshold

    @classmethod
    def create(
        cls,
        repository: CacheStore,
        embedding_provider: EmbeddingProvider | None = None,
        similarity_threshold: float | None = None,
    ) -> "SemanticCache":
        """Factory method to create SemanticCache with the configured threshold."""
        return cls(
            repository=repository,
            embedding_provider=embedding_provider,
            similarity_threshold=similarity_threshold,
        )

    @staticmethod
    def _validate_threshold(threshold: float) -> None:
        if not 0 <= threshold <= 1:
            raise ValueError("Threshold must be between 0 and 1")

    async def embed(self, query: str) -> list[float]:
        """Embed a query with the configured provider.

        Raises:
            CacheUnavailable: If no provider is configured or encoding fails
        """
        if self._embeddings is None:
            raise CacheUnavailable("No embedding provider configured")
        try:
            return await self._embeddings.encode(query)
        except (RuntimeError, OSError, ValueError) as exc:
            raise CacheUnavailable(f"Embedding failed: {exc}") from exc

    def lookup(self, embedding: list[float]) -> CacheMatchEntity | None:
        """Find a cached response for a semantically similar query.

        Business logic:
        1. Scan stored embeddings for the best cosine similarity
        2. Hit if similarity >= threshold: bump entry and global hit counts
        3. Otherwise count a global miss

        Args:
            embedding: Embedding of the incoming query

        Returns:
            CacheMatchEntity on a hit, None on a miss

        Raises:
            CacheUnavailable: If the store cannot be reached
        """
        try:
            found = self._repository.find_by_vector(vector=embedding, threshold=self._threshold)
            if found is None:
                self._repository.record_miss()
                logger.debug("Semantic cache MISS")
                return None

            entry, similarity = found
            hits = self._repository.record_hit(entry.key)
        except _STORE_ERRORS as exc:
            raise CacheUnavailable(str(exc)) from exc

        logger.info("Semantic cache HIT (similarity=%.3f): %r", similarity, entry.query)
        return CacheMatchEntity(
            key=entry.key,
            query=entry.query,
            response=entry.response,
            similarity=similarity,
            cached_at=entry.created_at,
            hits=hits,
        )

    def store(self, query: str, embedding: list[float], response: dict[str, Any]) -> str:
        """Store a query, its embedding and the response payload.

        Returns:
            The storage key for the entry

        Raises:
            ValueError: If the embedding width does not match the store
            CacheUnavailable: If the store cannot be reached
        """
        try:
            key = self._repository.store(query=query, embedding=embedding, response=response)
        except _STORE_ERRORS as exc:
            raise CacheUnavailable(str(exc)) from exc
        logger.debug("Stored in semantic cache: %r", query)
        return key

    def clear(self) -> int:
        """Drop every entry and zero the hit/miss counters.

        Returns:
            Number of entries deleted
        """
        try:
            deleted = self._repository.clear_all()
        except _STORE_ERRORS as exc:
            raise CacheUnavailable(str(exc)) from exc
        logger.warning("ADMIN ACTION: Semantic cache cleared (%d entries)", deleted)
        return deleted

    def get_stats(self) -> CacheStatsEntity:
        """Get cache statistics.

        Raises:
            CacheUnavailable: If the store cannot be reached
        """
        try:
            cached = self._repository.count_all()
            hits, misses = self._repository.get_counters()
        except _STORE_ERRORS as exc:
            raise CacheUnavailable(str(exc)) from exc
        return CacheStatsEntity(
            cached_queries=cached,
            cache_hits=hits,
            cache_misses=misses,
            similarity_threshold=self._threshold,
            capacity=self._repository.capacity,
            eviction_policy=self._repository.eviction_policy,
            ttl_seconds=self._repository.ttl,
        )

    async def is_healthy(self) -> bool:
        """True if the store answers and the embedder (when set) is available."""
        repo_healthy = self._repository.health_check()
        if self._embeddings is None:
            return repo_healthy
        embeddings_healthy = await self._embeddings.is_available()
        return repo_healthy and embeddings_healthy

    def set_threshold(self, threshold: float) -> None:
        """Update the similarity threshold.

        Args:
            threshold: New threshold value (0-1, higher = more strict)
        """
        self._validate_threshold(threshold)
        self._threshold = threshold

    @property
    def threshold(self) -> float:
        """Get current similarity threshold."""
        return self._threshold

    @property
    def repository(self) -> CacheStore:
        """Get the underlying repository (for testing)."""
        return self._repository

    @property
    def embedding_provider(self) -> EmbeddingProvider | None:
        return self._embeddings
