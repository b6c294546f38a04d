from datetime import date

import pytest

from fitcoach.coach.cost_governor import CostGovernor


class FakeToday:
    def __init__(self, day: date) -> None:
        self.day = day

    def __call__(self) -> date:
        return self.day


def test_estimate_cost_uses_model_rates():
    assert CostGovernor.estimate_cost(1_000_000, 0, "gpt-4o-mini") == pytest.approx(0.15)
    assert CostGovernor.estimate_cost(0, 1_000_000, "gpt-4o") == pytest.approx(10.0)


def test_unknown_model_is_priced_as_default():
    assert CostGovernor.estimate_cost(1000, 1000, "some-new-model") == CostGovernor.estimate_cost(1000, 1000)


def test_track_call_reports_budget_state():
    governor = CostGovernor(daily_limit_usd=0.001)

    assert governor.track_call(1000, 100) is True
    assert governor.track_call(10_000, 10_000) is False
    assert governor.call_count == 2
    assert governor.daily_cost > 0.001


def test_advisory_mode_never_blocks():
    governor = CostGovernor(daily_limit_usd=0.0)
    governor.track_call(1000, 1000)

    assert governor.within_budget() is False
    assert governor.allows_call() is True


def test_enforced_mode_blocks_subsequent_calls():
    governor = CostGovernor(daily_limit_usd=0.0, enforce=True)

    assert governor.allows_call() is True
    governor.track_call(1000, 1000)
    assert governor.allows_call() is False


def test_daily_total_resets_on_new_day():
    today = FakeToday(date(2026, 3, 1))
    governor = CostGovernor(daily_limit_usd=0.0, enforce=True, today=today)
    governor.track_call(1000, 1000)
    assert governor.allows_call() is False

    today.day = date(2026, 3, 2)

    assert governor.daily_cost == 0.0
    assert governor.call_count == 0
    assert governor.allows_call() is True


def test_reset():
    governor = CostGovernor()
    governor.track_call(5000, 5000)

    governor.reset()

    assert governor.daily_cost == 0.0
