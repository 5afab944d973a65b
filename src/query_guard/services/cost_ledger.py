"""Daily spend ledger guarding the upstream budget.

Reserve and Commit are optimistic: Reserve only checks the current total
and Commit adds the actual cost later. Several requests can pass Reserve
before any of them commits, so the day's spend may exceed the limit by at
most the cost of the calls already in flight when it was reached. No lock
serialises requests across workers.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal

from query_guard.config import settings
from query_guard.entities import CostStats
from query_guard.protocols import CostStore

logger = logging.getLogger(__name__)

MICROS = Decimal("1000000")


def to_micros(amount: Decimal) -> int:
    """Convert a currency amount to integer micro-units (rounded half-even)."""
    return int((Decimal(amount) * MICROS).to_integral_value())


def from_micros(micros: int) -> Decimal:
    return Decimal(micros) / MICROS


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class CostLedger:
    """Per-UTC-day spend and query count against a fixed daily limit.

    The day is derived from the UTC clock on every call, so a new day
    starts with a fresh entry without any scheduler.

    Example:
        ```python
        ledger = CostLedger.create(store=RedisCostRepository.create())
        ok, stats = ledger.reserve(Decimal("0.02"))
        if ok:
            ...  # call upstream
            ledger.commit(actual_cost, day=stats.day)
        ```
    """

    def __init__(
        self,
        store: CostStore,
        daily_limit: Decimal | None = None,
        cost_per_query: Decimal | None = None,
        max_queries_per_day: int | None = None,
        alert_ratio: float | None = None,
        clock=utc_today,
    ) -> None:
        """Initialize the cost ledger.

        Args:
            store: Counter backend (required).
            daily_limit: Maximum spend per UTC day. Defaults to settings.
            cost_per_query: Estimated cost of one upstream call. Defaults to settings.
            max_queries_per_day: Optional cap on paid queries per day.
            alert_ratio: Fraction of the limit that triggers a cost alert.
            clock: Callable returning the current UTC date.
        """
        self._store = store
        self._limit = daily_limit if daily_limit is not None else settings.daily_cost_limit
        self._cost_per_query = cost_per_query if cost_per_query is not None else settings.cost_per_query
        self._max_queries = max_queries_per_day if max_queries_per_day is not None else settings.max_queries_per_day
        self._alert_ratio = alert_ratio if alert_ratio is not None else settings.cost_alert_ratio
        self._clock = clock

    @classmethod
    def create(cls, store: CostStore, daily_limit: Decimal | None = None) -> "CostLedger":
        """Factory method to create CostLedger with limits from settings."""
        return cls(store=store, daily_limit=daily_limit)

    @property
    def daily_limit(self) -> Decimal:
        return self._limit

    @property
    def cost_per_query(self) -> Decimal:
        """Estimated cost of one upstream call, used for Reserve."""
        return self._cost_per_query

    def today(self) -> date:
        return self._clock()

    def _stats(self, day: date, cost_micros: int, queries: int) -> CostStats:
        current = from_micros(cost_micros)
        remaining: int | None = None
        if self._max_queries is not None:
            remaining = max(0, self._max_queries - queries)
        elif self._cost_per_query > 0:
            remaining_budget = max(Decimal("0"), self._limit - current)
            remaining = int(remaining_budget // self._cost_per_query)
        return CostStats(
            day=day,
            current_cost=current,
            daily_limit=self._limit,
            query_count=queries,
            remaining_queries=remaining,
        )

    def reserve(self, estimated_cost: Decimal | None = None) -> tuple[bool, CostStats]:
        """Check whether a call of the estimated cost fits today's budget.

        Nothing is held: the caller commits the actual cost afterwards.

        Args:
            estimated_cost: Expected cost of the call. Defaults to cost_per_query.

        Returns:
            Tuple (ok, stats for the day the check ran on)
        """
        estimate = self._cost_per_query if estimated_cost is None else Decimal(estimated_cost)
        day = self.today()
        cost_micros, queries = self._store.read(day)
        stats = self._stats(day, cost_micros, queries)

        if self._max_queries is not None and queries >= self._max_queries:
            logger.warning("Daily query cap reached: %d/%d", queries, self._max_queries)
            return False, stats

        if cost_micros + to_micros(estimate) > to_micros(self._limit):
            logger.warning(
                "Daily cost limit reached: $%s + $%s > $%s",
                stats.current_cost,
                estimate,
                self._limit,
            )
            return False, stats

        return True, stats

    def commit(self, actual_cost: Decimal, day: date | None = None) -> CostStats:
        """Add the actual cost of a completed call and count the query.

        Args:
            actual_cost: What the upstream call cost
            day: Day to charge, normally the day returned by reserve.
                Defaults to today.

        Returns:
            Stats for the charged day after the update
        """
        day = day or self.today()
        cost_micros, queries = self._store.add(day, to_micros(actual_cost))
        stats = self._stats(day, cost_micros, queries)

        alert_at = self._limit * Decimal(str(self._alert_ratio))
        previous = stats.current_cost - Decimal(actual_cost)
        if previous < alert_at <= stats.current_cost:
            logger.warning(
                "COST ALERT: Daily cost at %.1f%% of limit ($%s / $%s)",
                stats.utilization_percent,
                stats.current_cost,
                self._limit,
            )

        logger.info(
            "Query cost tracked: $%s (daily total: $%s, queries: %d)",
            actual_cost,
            stats.current_cost,
            stats.query_count,
        )
        return stats

    def get_stats(self) -> CostStats:
        """Today's spend, limit and query count."""
        day = self.today()
        cost_micros, queries = self._store.read(day)
        return self._stats(day, cost_micros, queries)

    def reset_daily(self) -> CostStats:
        """Zero today's entry. Safe to call repeatedly."""
        day = self.today()
        self._store.reset(day)
        logger.warning("ADMIN ACTION: Daily cost tracking reset for %s", day.isoformat())
        return self._stats(day, 0, 0)
