"""Redis implementation of CostStore.

One hash per UTC day, ``cost:daily:<YYYY-MM-DD>`` with integer fields
``cost_micros`` and ``queries``. Integer micro-units keep sums exact;
HINCRBY is atomic, so concurrent commits never lose an update and a day's
entry is created exactly once by whichever command touches it first.
"""

from datetime import date

import redis

from query_guard.config import get_redis_client

KEY_PREFIX = "cost:daily"

# Superseded day entries are kept for a while for inspection.
DAY_KEY_TTL_SECONDS = 2 * 86400


def day_key(day: date) -> str:
    return f"{KEY_PREFIX}:{day.isoformat()}"


class RedisCostRepository:
    """Per-day spend counters on Redis hashes."""

    def __init__(self, redis_client: redis.Redis | None = None) -> None:
        self._client = redis_client or get_redis_client()

    @classmethod
    def create(cls, redis_client: redis.Redis | None = None) -> "RedisCostRepository":
        return cls(redis_client=redis_client)

    def add(self, day: date, cost_micros: int, queries: int = 1) -> tuple[int, int]:
        key = day_key(day)
        pipe = self._client.pipeline(transaction=True)
        pipe.hincrby(key, "cost_micros", cost_micros)
        pipe.hincrby(key, "queries", queries)
        pipe.expire(key, DAY_KEY_TTL_SECONDS)
        cost, count, _ = pipe.execute()
        return int(cost), int(count)

    def read(self, day: date) -> tuple[int, int]:
        cost, count = self._client.hmget(day_key(day), "cost_micros", "queries")
        return int(cost or 0), int(count or 0)

    def reset(self, day: date) -> None:
        self._client.delete(day_key(day))
