"""Per-client request quotas over a minute window and a day window."""

import logging

import redis

from query_guard.config import settings
from query_guard.entities import ActiveClients, RateLimitStatus, WindowKind, WindowStatus
from query_guard.errors import RateLimiterUnavailable
from query_guard.protocols import RateLimitStore

logger = logging.getLogger(__name__)

MINUTE_SECONDS = 60
DAY_SECONDS = 86400


class RateLimiter:
    """Two fixed-window counters per client, checked after incrementing.

    Rejected requests still count against the window, so a client retrying
    in a loop cannot reset its own limit.

    A store outage fails closed: RateLimiterUnavailable is raised and the
    caller must refuse the request.

    Example:
        ```python
        limiter = RateLimiter.create(store=RedisRateLimitRepository.create())
        allowed, status = limiter.check_and_increment("203.0.113.5")
        ```
    """

    def __init__(
        self,
        store: RateLimitStore,
        per_minute: int | None = None,
        per_day: int | None = None,
        minute_window: int = MINUTE_SECONDS,
        day_window: int = DAY_SECONDS,
    ) -> None:
        """Initialize the rate limiter.

        Args:
            store: Counter backend (required).
            per_minute: Requests allowed per minute window. Defaults to settings.
            per_day: Requests allowed per day window. Defaults to settings.
            minute_window: Length of the short window in seconds.
            day_window: Length of the long window in seconds.
        """
        self._store = store
        self._limits = {
            WindowKind.MINUTE: per_minute if per_minute is not None else settings.rate_limit_per_minute,
            WindowKind.DAY: per_day if per_day is not None else settings.rate_limit_per_day,
        }
        self._windows = {
            WindowKind.MINUTE: minute_window,
            WindowKind.DAY: day_window,
        }

    @classmethod
    def create(
        cls,
        store: RateLimitStore,
        per_minute: int | None = None,
        per_day: int | None = None,
    ) -> "RateLimiter":
        """Factory method to create RateLimiter with limits from settings."""
        return cls(store=store, per_minute=per_minute, per_day=per_day)

    @property
    def per_minute(self) -> int:
        return self._limits[WindowKind.MINUTE]

    @property
    def per_day(self) -> int:
        return self._limits[WindowKind.DAY]

    def _status(self, client: str, counts: dict[WindowKind, tuple[int, int]]) -> RateLimitStatus:
        windows = {
            kind: WindowStatus(count=count, limit=self._limits[kind], reset_in_seconds=ttl)
            for kind, (count, ttl) in counts.items()
        }
        return RateLimitStatus(client=client, minute=windows[WindowKind.MINUTE], day=windows[WindowKind.DAY])

    def check_and_increment(self, client: str) -> tuple[bool, RateLimitStatus]:
        """Count a request and decide whether it may proceed.

        Args:
            client: Client key (IP address)

        Returns:
            Tuple (allowed, status after the increment)

        Raises:
            RateLimiterUnavailable: If the counter store cannot be reached
        """
        try:
            counts = self._store.increment(client, self._windows)
        except (redis.RedisError, OSError) as exc:
            logger.error("Rate limit store unreachable, rejecting request from %s: %s", client, exc)
            raise RateLimiterUnavailable(str(exc)) from exc

        status = self._status(client, counts)
        if status.minute.exceeded:
            logger.warning(
                "Rate limit exceeded for %s: %d requests in last minute (limit: %d)",
                client,
                status.minute.count,
                status.minute.limit,
            )
        elif status.day.exceeded:
            logger.warning(
                "Daily rate limit exceeded for %s: %d requests today (limit: %d)",
                client,
                status.day.count,
                status.day.limit,
            )
        else:
            logger.debug(
                "Request allowed for %s: %d/min, %d/day", client, status.minute.count, status.day.count
            )

        return not status.exceeded, status

    def status(self, client: str) -> RateLimitStatus:
        """Read a client's counters without incrementing.

        Raises:
            RateLimiterUnavailable: If the counter store cannot be reached
        """
        try:
            counts = self._store.read(client)
        except (redis.RedisError, OSError) as exc:
            raise RateLimiterUnavailable(str(exc)) from exc
        return self._status(client, counts)

    def active_clients(self) -> ActiveClients:
        """Count clients holding an open counter in each window.

        Raises:
            RateLimiterUnavailable: If the counter store cannot be reached
        """
        try:
            minute = self._store.count_active(WindowKind.MINUTE)
            day = self._store.count_active(WindowKind.DAY)
        except (redis.RedisError, OSError) as exc:
            raise RateLimiterUnavailable(str(exc)) from exc
        return ActiveClients(
            minute=minute,
            day=day,
            limit_per_minute=self.per_minute,
            limit_per_day=self.per_day,
        )

    def reset_all(self) -> int:
        """Delete every counter for every client.

        Idempotent: resetting an empty limiter deletes nothing and succeeds.

        Returns:
            Number of counter keys removed
        """
        deleted = self._store.delete_all()
        logger.warning("ADMIN ACTION: Rate limits reset (%d keys deleted)", deleted)
        return deleted
