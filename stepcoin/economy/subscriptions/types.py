from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from stepcoin.economy.subscriptions.pricing import CoinScenario


@dataclass(slots=True)
class PlanCoinCalculation:
    plan_id: int
    plan_name: str
    price: Decimal
    currency: str
    duration_days: int
    can_use_coins: bool
    max_coins_allowed: int
    max_coin_discount: Decimal
    coins_usable_now: int
    final_price_with_max_coins: Decimal
    coins_required: int
    meets_minimum_requirement: bool


@dataclass(slots=True)
class CoinCalculatorResult:
    user_id: int
    available_coins: int
    plans: list[PlanCoinCalculation]


@dataclass(slots=True)
class SubscriptionStatistics:
    total_subscriptions: int
    active_subscriptions: int
    cancelled_subscriptions: int
    total_spent: Decimal
    total_coins_used: int
    total_coin_discount: Decimal


@dataclass(slots=True)
class CoinScenarioResult:
    plan_id: int
    plan_name: str
    original_price: Decimal
    currency: str
    scenario: CoinScenario
