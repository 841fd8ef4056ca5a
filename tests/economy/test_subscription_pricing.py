from __future__ import annotations

from decimal import Decimal

import pytest

from stepcoin.economy.errors import ValidationError
from stepcoin.economy.subscriptions.pricing import (
    PlanPricingTerms,
    coins_enabled,
    ensure_purchasable,
    evaluate_coin_scenario,
    max_coin_discount,
    max_coins_allowed,
    price_plan,
)


def terms(
    *,
    price: str = "499",
    ratio: str = "1.5",
    percent: str = "50",
    coins_required: int = 0,
) -> PlanPricingTerms:
    return PlanPricingTerms(
        price=Decimal(price),
        coin_value_ratio=Decimal(ratio),
        max_coin_redemption_percent=Decimal(percent),
        coins_required=coins_required,
    )


def test_max_coins_allowed_is_floored() -> None:
    # 499 * 50% / 1.5 = 166.33
    assert max_coins_allowed(terms()) == 166


def test_price_plan_uses_min_of_requested_available_and_cap() -> None:
    quote = price_plan(terms(), requested_coins=500, available_coins=100)

    assert quote.coins_used == 100
    assert quote.coin_discount == Decimal("150.00")
    assert quote.final_price == Decimal("349.00")
    assert quote.payment_method == "razorpay"


def test_price_plan_caps_at_redemption_percent() -> None:
    quote = price_plan(terms(), requested_coins=1000, available_coins=1000)

    assert quote.coins_used == 166
    assert quote.coin_discount == Decimal("249.00")
    assert quote.final_price == Decimal("250.00")


def test_zero_ratio_disables_coins() -> None:
    plan_terms = terms(ratio="0")
    quote = price_plan(plan_terms, requested_coins=50, available_coins=50)

    assert coins_enabled(plan_terms) is False
    assert quote.coins_enabled is False
    assert quote.coins_used == 0
    assert quote.final_price == Decimal("499.00")
    assert max_coin_discount(plan_terms) == Decimal("0")


def test_full_coverage_switches_to_coins_payment() -> None:
    quote = price_plan(terms(price="30", ratio="1.5", percent="100"), requested_coins=20, available_coins=20)

    assert quote.coins_used == 20
    assert quote.final_price == Decimal("0.00")
    assert quote.payment_method == "coins"


def test_coins_required_minimum_is_enforced() -> None:
    quote = price_plan(terms(coins_required=200), requested_coins=150, available_coins=150)

    assert quote.meets_minimum_requirement is False
    with pytest.raises(ValidationError):
        ensure_purchasable(quote)


def test_coins_required_met_passes() -> None:
    quote = price_plan(terms(price="1000", coins_required=100), requested_coins=120, available_coins=120)

    assert quote.meets_minimum_requirement is True
    ensure_purchasable(quote)


def test_negative_requested_coins_rejected() -> None:
    with pytest.raises(ValidationError):
        price_plan(terms(), requested_coins=-1, available_coins=10)


def test_discount_is_rounded_half_up_to_paise() -> None:
    quote = price_plan(terms(price="100", ratio="0.125", percent="100"), requested_coins=3, available_coins=3)

    assert quote.coin_discount == Decimal("0.38")
    assert quote.final_price == Decimal("99.62")


def test_max_coin_discount_respects_floor_of_coins() -> None:
    assert max_coin_discount(terms()) == Decimal("249.00")


def test_scenario_within_limits_pays_with_coins_and_card() -> None:
    scenario = evaluate_coin_scenario(terms(), requested_coins=100, available_coins=120)

    assert scenario.coins_that_can_be_used == 100
    assert scenario.coin_discount == Decimal("150.00")
    assert scenario.final_price == Decimal("349.00")
    assert scenario.payment_method == "coins_and_card"
    assert scenario.meets_requirements is True
    assert scenario.errors == ()


def test_scenario_reports_every_violated_limit() -> None:
    scenario = evaluate_coin_scenario(
        terms(coins_required=200),
        requested_coins=300,
        available_coins=180,
    )

    assert scenario.coins_that_can_be_used == 166
    assert scenario.meets_requirements is False
    assert scenario.errors == (
        "This plan requires at least 200 coins",
        "Insufficient coins available",
        "Maximum 166 coins allowed for this plan",
    )


def test_scenario_without_coins_is_card_only() -> None:
    scenario = evaluate_coin_scenario(terms(), requested_coins=0, available_coins=500)

    assert scenario.payment_method == "card"
    assert scenario.final_price == Decimal("499.00")
    assert scenario.errors == ()


def test_scenario_covering_full_price_is_coins_only() -> None:
    scenario = evaluate_coin_scenario(
        terms(price="100", ratio="1", percent="100"),
        requested_coins=100,
        available_coins=100,
    )

    assert scenario.payment_method == "coins"
    assert scenario.final_price == Decimal("0.00")


def test_scenario_for_plan_without_coin_support() -> None:
    scenario = evaluate_coin_scenario(terms(ratio="0"), requested_coins=50, available_coins=50)

    assert scenario.can_use_coins is False
    assert scenario.coins_that_can_be_used == 0
    assert scenario.payment_method == "card"
    assert scenario.errors == ("This plan does not support coin redemption",)
