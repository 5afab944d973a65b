"""Redis implementation of RateLimitStore.

Layout:
    ratelimit:minute:<client>   integer counter, TTL = minute window
    ratelimit:daily:<client>    integer counter, TTL = day window
    ratelimit:index:minute      zset member=<client>, score=window expiry
    ratelimit:index:daily       zset member=<client>, score=window expiry

The index sets let the admin view count active clients without scanning
the keyspace. Members whose score is in the past are pruned on read.
"""

import time

import redis

from query_guard.config import get_redis_client
from query_guard.entities import WindowKind

KEY_PREFIX = "ratelimit"


def counter_key(window: WindowKind, client: str) -> str:
    return f"{KEY_PREFIX}:{window.value}:{client}"


def index_key(window: WindowKind) -> str:
    return f"{KEY_PREFIX}:index:{window.value}"


class RedisRateLimitRepository:
    """Fixed-window counters on Redis INCR.

    The window opens on the first request (``SET ... NX EX``) and closes
    when Redis expires the key, so no sweeper is needed.
    """

    def __init__(self, redis_client: redis.Redis | None = None) -> None:
        self._client = redis_client or get_redis_client()

    @classmethod
    def create(cls, redis_client: redis.Redis | None = None) -> "RedisRateLimitRepository":
        return cls(redis_client=redis_client)

    def increment(
        self,
        client: str,
        windows: dict[WindowKind, int],
    ) -> dict[WindowKind, tuple[int, int]]:
        """Increment every window counter in one MULTI/EXEC transaction.

        Per window: ``SET key 0 NX EX <window>`` opens the window if absent,
        ``INCR`` counts the request without touching the TTL, ``TTL`` reads
        the time left.

        Raises:
            redis.RedisError: If Redis cannot be reached
        """
        kinds = list(windows)
        pipe = self._client.pipeline(transaction=True)
        for kind in kinds:
            key = counter_key(kind, client)
            pipe.set(key, 0, nx=True, ex=windows[kind])
            pipe.incr(key)
            pipe.ttl(key)
        results = pipe.execute()

        now = time.time()
        counts: dict[WindowKind, tuple[int, int]] = {}
        index_pipe = self._client.pipeline(transaction=False)
        for position, kind in enumerate(kinds):
            _, count, ttl = results[position * 3 : position * 3 + 3]
            ttl = max(int(ttl), 0)
            counts[kind] = (int(count), ttl)
            index_pipe.zadd(index_key(kind), {client: now + ttl})
        index_pipe.execute()

        return counts

    def read(self, client: str) -> dict[WindowKind, tuple[int, int]]:
        """Read counters and TTLs without creating keys."""
        kinds = list(WindowKind)
        pipe = self._client.pipeline(transaction=False)
        for kind in kinds:
            key = counter_key(kind, client)
            pipe.get(key)
            pipe.ttl(key)
        results = pipe.execute()

        counts: dict[WindowKind, tuple[int, int]] = {}
        for position, kind in enumerate(kinds):
            raw, ttl = results[position * 2 : position * 2 + 2]
            if raw is None:
                counts[kind] = (0, 0)
            else:
                counts[kind] = (int(raw), max(int(ttl), 0))
        return counts

    def count_active(self, window: WindowKind) -> int:
        """Count clients with an open window, pruning expired index members."""
        key = index_key(window)
        pipe = self._client.pipeline()
        pipe.zremrangebyscore(key, "-inf", time.time())
        pipe.zcard(key)
        _, active = pipe.execute()
        return int(active)

    def delete_all(self) -> int:
        """Delete every counter key and both index sets.

        Clients are collected from the index sets; a SCAN pass catches any
        counter whose index write was lost.

        Returns:
            Number of counter keys removed
        """
        keys: set[str] = set()
        for kind in WindowKind:
            for member in self._client.zrange(index_key(kind), 0, -1):
                client = member.decode() if isinstance(member, bytes) else member
                keys.add(counter_key(kind, client))
            for key in self._client.scan_iter(match=f"{KEY_PREFIX}:{kind.value}:*"):
                keys.add(key.decode() if isinstance(key, bytes) else key)

        deleted = 0
        if keys:
            deleted = int(self._client.delete(*keys))
        self._client.delete(*(index_key(kind) for kind in WindowKind))
        return deleted
