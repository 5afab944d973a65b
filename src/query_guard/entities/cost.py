"""Cost ledger domain entities."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal


@dataclass(frozen=True)
class CostStats:
    """Snapshot of one day's ledger entry.

    ``remaining_queries`` is None when neither a query cap nor a per-query
    cost estimate bounds it.
    """

    day: date
    current_cost: Decimal
    daily_limit: Decimal
    query_count: int
    remaining_queries: int | None

    @property
    def remaining_budget(self) -> Decimal:
        return max(Decimal("0"), self.daily_limit - self.current_cost)

    @property
    def utilization_percent(self) -> float:
        if self.daily_limit == 0:
            return 100.0 if self.current_cost > 0 else 0.0
        return float(self.current_cost / self.daily_limit * 100)
