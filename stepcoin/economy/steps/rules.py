from __future__ import annotations

from dataclasses import replace
from datetime import date

from stepcoin.economy.errors import ValidationError
from stepcoin.economy.steps.constants import (
    MAX_COIN_VALUE,
    MAX_COINS_PER_THRESHOLD,
    MAX_MAX_COINS_PER_DAY,
    MAX_THRESHOLD_STEPS,
    MIN_COIN_VALUE,
    MIN_COINS_PER_THRESHOLD,
    MIN_MAX_COINS_PER_DAY,
    MIN_THRESHOLD_STEPS,
    RESET_POLICIES,
)
from stepcoin.economy.steps.types import StepAward, StepProgress, StepsConfigValues


def should_reset(progress: StepProgress, *, reset_policy: str, today: date) -> bool:
    return reset_policy == "daily" and progress.last_reset_date != today


def reset_daily_progress(progress: StepProgress, *, today: date) -> StepProgress:
    return replace(
        progress,
        steps_since_threshold=0,
        coins_earned_today=0,
        last_threshold=0,
        last_reset_date=today,
    )


def apply_steps(progress: StepProgress, *, steps: int, config: StepsConfigValues) -> StepAward:
    if steps < 0:
        raise ValidationError("steps must be non-negative")
    if config.threshold_steps <= 0:
        raise ValidationError("threshold_steps must be positive")

    since_threshold = progress.steps_since_threshold + steps
    crossed = since_threshold // config.threshold_steps
    potential_coins = crossed * config.coins_per_threshold
    remaining_today = config.max_coins_per_day - progress.coins_earned_today
    awarded = max(0, min(potential_coins, remaining_today))
    remainder = since_threshold % config.threshold_steps

    updated = replace(
        progress,
        steps_since_threshold=remainder,
        total_steps=progress.total_steps + steps,
        coins_earned_today=progress.coins_earned_today + awarded,
        last_threshold=progress.last_threshold + crossed * config.threshold_steps,
    )
    return StepAward(
        progress=updated,
        thresholds_crossed=crossed,
        potential_coins=potential_coins,
        awarded_coins=awarded,
        steps_to_next_threshold=config.threshold_steps - remainder,
    )


def validate_config_values(config: StepsConfigValues) -> None:
    if not MIN_THRESHOLD_STEPS <= config.threshold_steps <= MAX_THRESHOLD_STEPS:
        raise ValidationError("threshold_steps out of range")
    if not MIN_COINS_PER_THRESHOLD <= config.coins_per_threshold <= MAX_COINS_PER_THRESHOLD:
        raise ValidationError("coins_per_threshold out of range")
    if not MIN_MAX_COINS_PER_DAY <= config.max_coins_per_day <= MAX_MAX_COINS_PER_DAY:
        raise ValidationError("max_coins_per_day out of range")
    for coin_value in (config.coin_value_in_rupees, config.coin_value_in_usd):
        if not MIN_COIN_VALUE <= coin_value <= MAX_COIN_VALUE:
            raise ValidationError("coin value out of range")
    if config.reset_policy not in RESET_POLICIES:
        raise ValidationError("unknown reset_policy")
