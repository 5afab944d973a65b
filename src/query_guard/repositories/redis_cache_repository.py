"""Redis implementation of CacheStore.

Entries are plain hashes scanned linearly with numpy, so any Redis server
works (no search module required). A sorted set orders entries for
eviction and doubles as the entry index.

Layout:
    semantic:cache:<id>     hash {query, embedding, response, created_at, hits}
    semantic:index          zset member=<entry key>, score=eviction rank
    semantic:stats:hits     global hit counter
    semantic:stats:misses   global miss counter
"""

import json
import logging
import time
import uuid
from typing import Any

import numpy as np
import redis

from query_guard.config import get_redis_client, settings
from query_guard.entities import CacheEntryEntity
from query_guard.utils import best_match

logger = logging.getLogger(__name__)

KEY_PREFIX = "semantic:cache"
INDEX_KEY = "semantic:index"
HITS_KEY = "semantic:stats:hits"
MISSES_KEY = "semantic:stats:misses"


def _text(value: bytes | str) -> str:
    return value.decode() if isinstance(value, bytes) else value


class RedisCacheRepository:
    """Redis implementation of the semantic cache store.

    This class satisfies the CacheStore protocol through structural
    typing - no explicit inheritance needed.

    Eviction rank in the index:
    - lru: last store/hit time, lowest evicted first
    - lfu: hit count plus created_at / 1e10, so ties go to the oldest entry
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        dimension: int | None = None,
        capacity: int | None = None,
        eviction_policy: str | None = None,
        ttl: int | None = None,
    ) -> None:
        """Initialize the Redis cache repository.

        Args:
            redis_client: Redis client instance. If None, creates default.
            dimension: Embedding width every entry must have.
            capacity: Maximum number of entries.
            eviction_policy: "lru" or "lfu".
            ttl: Time-to-live for entries in seconds.
        """
        self._client = redis_client or get_redis_client()
        self._dimension = dimension if dimension is not None else settings.embedding_dimension
        self._capacity = capacity if capacity is not None else settings.cache_capacity
        self._policy = eviction_policy if eviction_policy is not None else settings.cache_eviction_policy
        self._ttl = ttl if ttl is not None else settings.cache_ttl

        if self._policy not in ("lru", "lfu"):
            raise ValueError(f"Unknown eviction policy: {self._policy}")
        if self._dimension < 1 or self._capacity < 1 or self._ttl < 1:
            raise ValueError("dimension, capacity and ttl must be positive")

    @classmethod
    def create(
        cls,
        redis_client: redis.Redis | None = None,
        dimension: int | None = None,
    ) -> "RedisCacheRepository":
        """Factory method to create RedisCacheRepository with defaults.

        Args:
            redis_client: Redis client. If None, uses settings.
            dimension: Embedding width. If None, uses settings.

        Returns:
            Configured RedisCacheRepository
        """
        return cls(redis_client=redis_client, dimension=dimension)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def eviction_policy(self) -> str:
        return self._policy

    @property
    def ttl(self) -> int:
        return self._ttl

    def _initial_rank(self, now: float) -> float:
        if self._policy == "lru":
            return now
        return now / 1e10

    def store(
        self,
        query: str,
        embedding: list[float],
        response: dict[str, Any],
    ) -> str:
        """Store a cache entry in Redis.

        Args:
            query: The original query text
            embedding: The embedding vector for the query
            response: The payload to cache

        Returns:
            The storage key for the entry

        Raises:
            ValueError: If the embedding width is wrong
        """
        if len(embedding) != self._dimension:
            raise ValueError(
                f"Embedding dimension {len(embedding)} does not match configured {self._dimension}"
            )

        self._make_room()

        key = f"{KEY_PREFIX}:{uuid.uuid4().hex}"
        now = time.time()
        vector_bytes = np.asarray(embedding, dtype=np.float32).tobytes()

        pipe = self._client.pipeline()
        pipe.hset(
            key,
            mapping={
                "query": query,
                "embedding": vector_bytes,
                "response": json.dumps(response),
                "created_at": str(now),
                "hits": 0,
            },
        )
        pipe.expire(key, self._ttl)
        pipe.zadd(INDEX_KEY, {key: self._initial_rank(now)})
        pipe.execute()

        return key

    def _make_room(self) -> None:
        """Evict lowest-ranked entries until there is space for one more.

        Two concurrent stores may both see free space, so the cache can
        briefly hold capacity + 1 entries.
        """
        while self._client.zcard(INDEX_KEY) >= self._capacity:
            popped = self._client.zpopmin(INDEX_KEY, 1)
            if not popped:
                break
            key = _text(popped[0][0])
            self._client.delete(key)
            logger.debug("Evicted cache entry %s (policy=%s)", key, self._policy)

    def _load_entries(self) -> list[CacheEntryEntity]:
        """Fetch every indexed entry, pruning ones Redis already expired."""
        keys = [_text(k) for k in self._client.zrange(INDEX_KEY, 0, -1)]
        if not keys:
            return []

        pipe = self._client.pipeline(transaction=False)
        for key in keys:
            pipe.hgetall(key)
        rows = pipe.execute()

        entries: list[CacheEntryEntity] = []
        stale: list[str] = []
        for key, row in zip(keys, rows):
            if not row or b"embedding" not in row:
                stale.append(key)
                continue

            embedding = np.frombuffer(row[b"embedding"], dtype=np.float32)
            if embedding.shape[0] != self._dimension:
                stale.append(key)
                continue

            entries.append(
                CacheEntryEntity(
                    key=key,
                    query=_text(row[b"query"]),
                    embedding=embedding.tolist(),
                    response=json.loads(row[b"response"]),
                    created_at=float(row[b"created_at"]),
                    hits=int(row.get(b"hits", 0)),
                )
            )

        if stale:
            pipe = self._client.pipeline()
            pipe.zrem(INDEX_KEY, *stale)
            pipe.delete(*stale)
            pipe.execute()

        return entries

    def find_by_vector(
        self,
        vector: list[float],
        threshold: float,
    ) -> tuple[CacheEntryEntity, float] | None:
        """Find the most similar entry at or above the threshold.

        Args:
            vector: The query embedding vector
            threshold: Minimum cosine similarity for a match

        Returns:
            Tuple (entry, similarity) for the best match, or None
        """
        entries = self._load_entries()
        if not entries:
            return None

        matrix = np.array([e.embedding for e in entries], dtype=np.float32)
        found = best_match(matrix, vector)
        if found is None:
            return None

        index, similarity = found
        if similarity < threshold:
            return None
        return entries[index], similarity

    def record_hit(self, key: str) -> int:
        """Increment the entry's hits, refresh its rank and count a global hit.

        An entry that expired after the lookup is dropped from the index
        instead of being recreated without a TTL. The global hit still counts
        because the response was served.
        """
        with self._client.pipeline() as pipe:
            while True:
                try:
                    pipe.watch(key)
                    if not pipe.exists(key):
                        pipe.reset()
                        self._client.zrem(INDEX_KEY, key)
                        self._client.incr(HITS_KEY)
                        return 0
                    pipe.multi()
                    pipe.hincrby(key, "hits", 1)
                    if self._policy == "lru":
                        pipe.zadd(INDEX_KEY, {key: time.time()}, xx=True)
                    else:
                        pipe.zadd(INDEX_KEY, {key: 1}, xx=True, incr=True)
                    pipe.incr(HITS_KEY)
                    results = pipe.execute()
                    return int(results[0])
                except redis.WatchError:
                    continue

    def record_miss(self) -> None:
        self._client.incr(MISSES_KEY)

    def get_counters(self) -> tuple[int, int]:
        hits, misses = self._client.mget(HITS_KEY, MISSES_KEY)
        return int(hits or 0), int(misses or 0)

    def clear_all(self) -> int:
        """Clear all entries and reset the hit/miss counters.

        Returns:
            Number of entries deleted
        """
        keys = [_text(k) for k in self._client.scan_iter(match=f"{KEY_PREFIX}:*")]
        deleted = 0
        if keys:
            deleted = int(self._client.delete(*keys))
        self._client.delete(INDEX_KEY, HITS_KEY, MISSES_KEY)
        return deleted

    def count_all(self) -> int:
        """Count live entries in the cache.

        Returns:
            Total number of cached entries
        """
        keys = self._client.zrange(INDEX_KEY, 0, -1)
        if not keys:
            return 0

        pipe = self._client.pipeline(transaction=False)
        for key in keys:
            pipe.exists(key)
        alive = pipe.execute()

        stale = [k for k, present in zip(keys, alive) if not present]
        if stale:
            self._client.zrem(INDEX_KEY, *stale)
        return len(keys) - len(stale)

    def health_check(self) -> bool:
        """Check if Redis is accessible.

        Returns:
            True if healthy, False otherwise
        """
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False

    @property
    def client(self) -> redis.Redis:
        """Get the Redis client."""
        return self._client
