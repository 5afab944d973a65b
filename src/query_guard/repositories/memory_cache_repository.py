"""In-process implementation of CacheStore.

Suited to a single worker process and to tests. The entry collection is
an immutable tuple replaced wholesale on every write, so lookups read a
consistent snapshot without taking the write lock.
"""

import logging
import threading
import time
import uuid
from typing import Any

import numpy as np

from query_guard.config import settings
from query_guard.entities import CacheEntryEntity
from query_guard.utils import best_match

logger = logging.getLogger(__name__)


class InMemoryCacheRepository:
    """Copy-on-write in-memory semantic cache store.

    Satisfies the CacheStore protocol. Eviction picks the entry with the
    oldest last access (lru) or the fewest hits, oldest first (lfu).
    """

    def __init__(
        self,
        dimension: int | None = None,
        capacity: int | None = None,
        eviction_policy: str | None = None,
        ttl: int | None = None,
    ) -> None:
        self._dimension = dimension if dimension is not None else settings.embedding_dimension
        self._capacity = capacity if capacity is not None else settings.cache_capacity
        self._policy = eviction_policy if eviction_policy is not None else settings.cache_eviction_policy
        self._ttl = ttl if ttl is not None else settings.cache_ttl

        if self._policy not in ("lru", "lfu"):
            raise ValueError(f"Unknown eviction policy: {self._policy}")
        if self._dimension < 1 or self._capacity < 1 or self._ttl < 1:
            raise ValueError("dimension, capacity and ttl must be positive")

        self._snapshot: tuple[tuple[CacheEntryEntity, ...], np.ndarray] = (
            (),
            np.zeros((0, self._dimension), dtype=np.float32),
        )
        self._write_lock = threading.Lock()
        self._counter_lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def eviction_policy(self) -> str:
        return self._policy

    @property
    def ttl(self) -> int:
        return self._ttl

    def _is_live(self, entry: CacheEntryEntity, now: float) -> bool:
        return now - entry.created_at < self._ttl

    def _publish(self, entries: list[CacheEntryEntity]) -> None:
        # Readers pick up entries and matrix together from one tuple.
        matrix = np.array([e.embedding for e in entries], dtype=np.float32).reshape(
            len(entries), self._dimension
        )
        self._snapshot = (tuple(entries), matrix)

    def _eviction_rank(self, entry: CacheEntryEntity) -> tuple[float, float]:
        if self._policy == "lru":
            return (entry.last_accessed, entry.created_at)
        return (float(entry.hits), entry.created_at)

    def store(
        self,
        query: str,
        embedding: list[float],
        response: dict[str, Any],
    ) -> str:
        """Store a cache entry, evicting one first when full.

        Raises:
            ValueError: If the embedding width is wrong
        """
        if len(embedding) != self._dimension:
            raise ValueError(
                f"Embedding dimension {len(embedding)} does not match configured {self._dimension}"
            )

        now = time.time()
        entry = CacheEntryEntity(
            key=f"memory:{uuid.uuid4().hex}",
            query=query,
            embedding=list(embedding),
            response=response,
            created_at=now,
        )

        with self._write_lock:
            entries = [e for e in self._snapshot[0] if self._is_live(e, now)]
            while len(entries) >= self._capacity:
                victim = min(entries, key=self._eviction_rank)
                entries.remove(victim)
                logger.debug("Evicted cache entry %s (policy=%s)", victim.key, self._policy)
            entries.append(entry)
            self._publish(entries)

        return entry.key

    def find_by_vector(
        self,
        vector: list[float],
        threshold: float,
    ) -> tuple[CacheEntryEntity, float] | None:
        entries, matrix = self._snapshot

        # Expired entries stay in the snapshot until the next write.
        now = time.time()
        live = [i for i, e in enumerate(entries) if self._is_live(e, now)]
        if not live:
            return None
        if len(live) < len(entries):
            entries = tuple(entries[i] for i in live)
            matrix = matrix[live]

        found = best_match(matrix, vector)
        if found is None or found[1] < threshold:
            return None
        return entries[found[0]], found[1]

    def record_hit(self, key: str) -> int:
        with self._counter_lock:
            self._hits += 1
            for entry in self._snapshot[0]:
                if entry.key == key:
                    entry.hits += 1
                    entry.last_accessed = time.time()
                    return entry.hits
        return 0

    def record_miss(self) -> None:
        with self._counter_lock:
            self._misses += 1

    def get_counters(self) -> tuple[int, int]:
        with self._counter_lock:
            return self._hits, self._misses

    def clear_all(self) -> int:
        with self._write_lock:
            count = len(self._snapshot[0])
            self._publish([])
        with self._counter_lock:
            self._hits = 0
            self._misses = 0
        return count

    def count_all(self) -> int:
        now = time.time()
        return sum(1 for e in self._snapshot[0] if self._is_live(e, now))

    def health_check(self) -> bool:
        return True
