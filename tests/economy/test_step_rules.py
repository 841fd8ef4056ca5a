from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from stepcoin.economy.errors import ValidationError
from stepcoin.economy.steps.rules import (
    apply_steps,
    reset_daily_progress,
    should_reset,
    validate_config_values,
)
from stepcoin.economy.steps.types import StepProgress, StepsConfigValues

DAY = date(2026, 3, 10)


def progress(
    *,
    steps_since_threshold: int = 0,
    total_steps: int = 0,
    coins_earned_today: int = 0,
    last_threshold: int = 0,
    last_reset_date: date = DAY,
) -> StepProgress:
    return StepProgress(
        steps_since_threshold=steps_since_threshold,
        total_steps=total_steps,
        coins_earned_today=coins_earned_today,
        last_threshold=last_threshold,
        last_reset_date=last_reset_date,
    )


def config(**overrides: object) -> StepsConfigValues:
    values = {
        "threshold_steps": 5000,
        "coins_per_threshold": 2,
        "max_coins_per_day": 6,
        "reset_policy": "continuous",
    }
    values.update(overrides)
    return StepsConfigValues(**values)


def test_steps_accumulate_across_reports_until_threshold() -> None:
    state = progress()
    awarded: list[int] = []
    for steps in (4000, 4000, 4000):
        award = apply_steps(state, steps=steps, config=config())
        awarded.append(award.awarded_coins)
        state = award.progress

    assert awarded == [0, 2, 2]
    assert state.steps_since_threshold == 2000
    assert state.total_steps == 12000
    assert state.last_threshold == 10000


def test_default_threshold_accumulates_to_single_award() -> None:
    state = progress()
    awarded: list[int] = []
    for steps in (4000, 4000, 4000):
        award = apply_steps(state, steps=steps, config=config(threshold_steps=10000))
        awarded.append(award.awarded_coins)
        state = award.progress

    assert awarded == [0, 0, 2]
    assert state.steps_since_threshold == 2000


def test_multiple_thresholds_in_one_report() -> None:
    award = apply_steps(progress(), steps=12000, config=config())

    assert award.thresholds_crossed == 2
    assert award.awarded_coins == 4
    assert award.progress.steps_since_threshold == 2000
    assert award.steps_to_next_threshold == 3000


def test_daily_cap_limits_award_but_steps_still_count() -> None:
    award = apply_steps(progress(coins_earned_today=5), steps=10000, config=config())

    assert award.potential_coins == 4
    assert award.awarded_coins == 1
    assert award.progress.coins_earned_today == 6
    assert award.progress.total_steps == 10000
    assert award.progress.steps_since_threshold == 0


def test_cap_already_reached_awards_nothing() -> None:
    award = apply_steps(progress(coins_earned_today=6), steps=5000, config=config())

    assert award.thresholds_crossed == 1
    assert award.awarded_coins == 0


def test_zero_steps_is_a_no_op_award() -> None:
    award = apply_steps(progress(steps_since_threshold=100), steps=0, config=config())

    assert award.awarded_coins == 0
    assert award.progress.steps_since_threshold == 100
    assert award.steps_to_next_threshold == 4900


def test_negative_steps_are_rejected() -> None:
    with pytest.raises(ValidationError):
        apply_steps(progress(), steps=-1, config=config())


def test_should_reset_only_for_daily_policy_on_new_day() -> None:
    stale = progress(last_reset_date=date(2026, 3, 9))

    assert should_reset(stale, reset_policy="daily", today=DAY) is True
    assert should_reset(stale, reset_policy="continuous", today=DAY) is False
    assert should_reset(progress(), reset_policy="daily", today=DAY) is False


def test_reset_clears_daily_counters_but_keeps_total_steps() -> None:
    stale = progress(
        steps_since_threshold=3000,
        total_steps=53000,
        coins_earned_today=6,
        last_threshold=50000,
        last_reset_date=date(2026, 3, 9),
    )

    reset = reset_daily_progress(stale, today=DAY)

    assert reset.steps_since_threshold == 0
    assert reset.coins_earned_today == 0
    assert reset.last_threshold == 0
    assert reset.total_steps == 53000
    assert reset.last_reset_date == DAY


def test_validate_config_values_accepts_defaults() -> None:
    validate_config_values(StepsConfigValues())


@pytest.mark.parametrize(
    "overrides",
    [
        {"threshold_steps": 999},
        {"threshold_steps": 50001},
        {"coins_per_threshold": 0},
        {"coins_per_threshold": 21},
        {"max_coins_per_day": 21},
        {"coin_value_in_rupees": Decimal("0.05")},
        {"coin_value_in_usd": Decimal("100.01")},
        {"reset_policy": "weekly"},
    ],
)
def test_validate_config_values_rejects_out_of_range(overrides: dict[str, object]) -> None:
    with pytest.raises(ValidationError):
        validate_config_values(config(**overrides))
