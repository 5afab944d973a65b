"""Rate limit domain entities."""

from dataclasses import dataclass
from enum import Enum


class WindowKind(str, Enum):
    """Rate limit window, valued by its Redis key segment."""

    MINUTE = "minute"
    DAY = "daily"


@dataclass(frozen=True)
class WindowStatus:
    """Counter state for one client in one window.

    Attributes:
        count: Requests seen in the current window (rejected ones included)
        limit: Configured cap for the window
        reset_in_seconds: Seconds until the window expires (0 if no window is open)
    """

    count: int
    limit: int
    reset_in_seconds: int

    @property
    def exceeded(self) -> bool:
        return self.count > self.limit


@dataclass(frozen=True)
class RateLimitStatus:
    """Both window counters for one client."""

    client: str
    minute: WindowStatus
    day: WindowStatus

    @property
    def exceeded(self) -> bool:
        return self.minute.exceeded or self.day.exceeded

    @property
    def retry_after(self) -> int:
        """Seconds until every exceeded window has reset."""
        waits = [w.reset_in_seconds for w in (self.minute, self.day) if w.exceeded]
        return max(waits) if waits else 0


@dataclass(frozen=True)
class ActiveClients:
    """Number of distinct clients holding an open counter in each window."""

    minute: int
    day: int
    limit_per_minute: int
    limit_per_day: int
