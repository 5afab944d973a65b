"""Tests for the daily cost ledger."""

import logging
from datetime import date
from decimal import Decimal

from query_guard.repositories import RedisCostRepository
from query_guard.repositories.redis_cost_repository import DAY_KEY_TTL_SECONDS, day_key
from query_guard.services import CostLedger
from query_guard.services.cost_ledger import from_micros, to_micros


class FixedClock:
    def __init__(self, day: date) -> None:
        self.day = day

    def __call__(self) -> date:
        return self.day


def make_ledger(redis_client, clock=None, **kwargs) -> CostLedger:
    kwargs.setdefault("daily_limit", Decimal("10.00"))
    kwargs.setdefault("cost_per_query", Decimal("0.02"))
    if clock is not None:
        kwargs["clock"] = clock
    return CostLedger(store=RedisCostRepository(redis_client=redis_client), **kwargs)


def test_micro_unit_conversion_is_exact():
    assert to_micros(Decimal("0.02")) == 20_000
    assert from_micros(20_000) == Decimal("0.02")
    assert to_micros(Decimal("0.0000004")) == 0


def test_fresh_day_starts_at_zero(cost_ledger):
    stats = cost_ledger.get_stats()

    assert stats.current_cost == Decimal("0")
    assert stats.query_count == 0
    assert stats.remaining_budget == Decimal("10.00")
    assert stats.remaining_queries == 500


def test_two_hundred_fifty_commits_sum_exactly(cost_ledger):
    """250 x 0.02 is exactly 5.00 with no float drift."""
    for _ in range(250):
        cost_ledger.commit(Decimal("0.02"))

    stats = cost_ledger.get_stats()
    assert stats.current_cost == Decimal("5.00")
    assert stats.query_count == 250
    assert stats.utilization_percent == 50.0


def test_reserve_rejects_when_estimate_would_exceed_limit(cost_ledger):
    for _ in range(499):
        cost_ledger.commit(Decimal("0.02"))

    ok, stats = cost_ledger.reserve(Decimal("0.02"))
    assert ok
    assert stats.current_cost == Decimal("9.98")

    cost_ledger.commit(Decimal("0.02"))
    ok, stats = cost_ledger.reserve(Decimal("0.02"))
    assert not ok
    assert stats.remaining_budget == Decimal("0")
    assert stats.remaining_queries == 0


def test_reserve_holds_nothing(cost_ledger):
    ok, _ = cost_ledger.reserve()
    assert ok
    assert cost_ledger.get_stats().current_cost == Decimal("0")
    assert cost_ledger.get_stats().query_count == 0


def test_reserve_respects_query_cap(redis_client):
    ledger = make_ledger(redis_client, max_queries_per_day=3)
    for _ in range(3):
        ledger.commit(Decimal("0.01"))

    ok, stats = ledger.reserve()
    assert not ok
    assert stats.remaining_queries == 0


def test_remaining_queries_uses_cap_when_configured(redis_client):
    ledger = make_ledger(redis_client, max_queries_per_day=100)
    ledger.commit(Decimal("0.02"))

    assert ledger.get_stats().remaining_queries == 99


def test_commit_counts_query_even_with_zero_cost(cost_ledger):
    cost_ledger.commit(Decimal("0"))

    stats = cost_ledger.get_stats()
    assert stats.query_count == 1
    assert stats.current_cost == Decimal("0")


def test_overshoot_is_bounded_by_in_flight_calls(cost_ledger):
    """Concurrent reservations all pass; commits may then exceed the limit."""
    for _ in range(495):
        cost_ledger.commit(Decimal("0.02"))

    reservations = [cost_ledger.reserve(Decimal("0.02")) for _ in range(8)]
    assert all(ok for ok, _ in reservations)
    for _ in reservations:
        cost_ledger.commit(Decimal("0.02"))

    stats = cost_ledger.get_stats()
    assert stats.current_cost == Decimal("10.06")
    assert stats.current_cost - stats.daily_limit <= Decimal("0.02") * 8
    assert not cost_ledger.reserve(Decimal("0.02"))[0]


def test_day_rollover_starts_fresh_entry(redis_client):
    clock = FixedClock(date(2026, 3, 1))
    ledger = make_ledger(redis_client, clock=clock)
    for _ in range(20):
        ledger.commit(Decimal("0.50"))
    assert not ledger.reserve(Decimal("0.50"))[0]

    clock.day = date(2026, 3, 2)

    ok, stats = ledger.reserve(Decimal("0.50"))
    assert ok
    assert stats.day == date(2026, 3, 2)
    assert stats.current_cost == Decimal("0")
    assert redis_client.exists(day_key(date(2026, 3, 1))) == 1


def test_commit_charges_the_reserved_day(redis_client):
    """A call reserved before midnight is charged to that day."""
    clock = FixedClock(date(2026, 3, 1))
    ledger = make_ledger(redis_client, clock=clock)
    _, reserved = ledger.reserve()

    clock.day = date(2026, 3, 2)
    ledger.commit(Decimal("0.02"), day=reserved.day)

    assert ledger.get_stats().query_count == 0
    cost, queries = RedisCostRepository(redis_client=redis_client).read(date(2026, 3, 1))
    assert (cost, queries) == (20_000, 1)


def test_day_key_expires(cost_ledger, redis_client):
    cost_ledger.commit(Decimal("0.02"))

    ttl = redis_client.ttl(day_key(cost_ledger.today()))
    assert 0 < ttl <= DAY_KEY_TTL_SECONDS


def test_reset_daily_is_idempotent(cost_ledger, caplog):
    cost_ledger.commit(Decimal("1.00"))

    with caplog.at_level(logging.WARNING, logger="query_guard"):
        cost_ledger.reset_daily()
        cost_ledger.reset_daily()

    stats = cost_ledger.get_stats()
    assert stats.current_cost == Decimal("0")
    assert stats.query_count == 0
    assert caplog.text.count("ADMIN ACTION") == 2


def test_cost_alert_logged_once_when_crossing_ratio(cost_ledger, caplog):
    with caplog.at_level(logging.WARNING, logger="query_guard"):
        for _ in range(460):
            cost_ledger.commit(Decimal("0.02"))

    assert caplog.text.count("COST ALERT") == 1


def test_zero_limit_rejects_everything(redis_client):
    ledger = make_ledger(redis_client, daily_limit=Decimal("0"))

    ok, stats = ledger.reserve()
    assert not ok
    assert stats.utilization_percent == 0.0
