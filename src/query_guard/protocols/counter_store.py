"""Counter storage protocols for the rate limiter and the cost ledger.

Both need atomic arithmetic on shared state that many workers mutate at
once, so implementations must increment in a single server-side operation
rather than read-then-write.
"""

from datetime import date
from typing import Protocol, runtime_checkable

from query_guard.entities import WindowKind


@runtime_checkable
class RateLimitStore(Protocol):
    """Per-client window counters with automatic expiry."""

    def increment(
        self,
        client: str,
        windows: dict[WindowKind, int],
    ) -> dict[WindowKind, tuple[int, int]]:
        """Atomically increment the client's counter in every window.

        Args:
            client: Client key (usually the IP address)
            windows: Window length in seconds for each window kind

        Returns:
            (count after increment, seconds until expiry) per window
        """
        ...

    def read(self, client: str) -> dict[WindowKind, tuple[int, int]]:
        """Read counters without creating or incrementing them."""
        ...

    def count_active(self, window: WindowKind) -> int:
        """Number of distinct clients with an open counter in the window."""
        ...

    def delete_all(self) -> int:
        """Delete every counter. Returns the number of counter keys removed."""
        ...


@runtime_checkable
class CostStore(Protocol):
    """Per-day spend (integer micro-units) and query count."""

    def add(self, day: date, cost_micros: int, queries: int = 1) -> tuple[int, int]:
        """Atomically add to the day's entry.

        Returns:
            (cost_micros, queries) totals after the increment
        """
        ...

    def read(self, day: date) -> tuple[int, int]:
        """Return (cost_micros, queries) for the day, zeros if absent."""
        ...

    def reset(self, day: date) -> None:
        """Zero the day's entry."""
        ...
