from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from stepcoin.db.models.steps_config import StepsConfig
from stepcoin.economy.steps.constants import (
    DEFAULT_COIN_VALUE_IN_RUPEES,
    DEFAULT_COIN_VALUE_IN_USD,
    DEFAULT_COINS_PER_THRESHOLD,
    DEFAULT_MAX_COINS_PER_DAY,
    DEFAULT_RESET_POLICY,
    DEFAULT_THRESHOLD_STEPS,
)


@dataclass(frozen=True, slots=True)
class StepsConfigValues:
    threshold_steps: int = DEFAULT_THRESHOLD_STEPS
    coins_per_threshold: int = DEFAULT_COINS_PER_THRESHOLD
    max_coins_per_day: int = DEFAULT_MAX_COINS_PER_DAY
    reset_policy: str = DEFAULT_RESET_POLICY
    coin_value_in_rupees: Decimal = DEFAULT_COIN_VALUE_IN_RUPEES
    coin_value_in_usd: Decimal = DEFAULT_COIN_VALUE_IN_USD
    config_id: int | None = None

    @classmethod
    def from_model(cls, config: StepsConfig) -> StepsConfigValues:
        # Columns are NOT NULL; falsy values fall back to the named defaults.
        return cls(
            threshold_steps=config.threshold_steps or DEFAULT_THRESHOLD_STEPS,
            coins_per_threshold=config.coins_per_threshold or DEFAULT_COINS_PER_THRESHOLD,
            max_coins_per_day=config.max_coins_per_day or DEFAULT_MAX_COINS_PER_DAY,
            reset_policy=config.reset_policy or DEFAULT_RESET_POLICY,
            coin_value_in_rupees=config.coin_value_in_rupees or DEFAULT_COIN_VALUE_IN_RUPEES,
            coin_value_in_usd=config.coin_value_in_usd or DEFAULT_COIN_VALUE_IN_USD,
            config_id=config.id,
        )


@dataclass(slots=True)
class StepProgress:
    steps_since_threshold: int
    total_steps: int
    coins_earned_today: int
    last_threshold: int
    last_reset_date: date


@dataclass(slots=True)
class StepAward:
    progress: StepProgress
    thresholds_crossed: int
    potential_coins: int
    awarded_coins: int
    steps_to_next_threshold: int


@dataclass(slots=True)
class StepReportResult:
    user_id: int
    accepted_steps: int
    current_steps_since_threshold: int
    thresholds_crossed: int
    new_coins_awarded: int
    total_coins: int
    available_coins: int
    coins_earned_today: int
    total_steps_today: int
    steps_to_next_threshold: int
    daily_reset_applied: bool


@dataclass(slots=True)
class StepsHistoryDay:
    day: date
    steps: int
    coins_earned: int


@dataclass(slots=True)
class StepsHistoryResult:
    user_id: int
    days: list[StepsHistoryDay]
    total_steps: int
    total_coins_earned: int
    generated_at: datetime
