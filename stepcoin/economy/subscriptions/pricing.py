from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal

from stepcoin.economy.errors import ValidationError

MONEY_QUANTUM = Decimal("0.01")
ZERO = Decimal("0")


@dataclass(frozen=True, slots=True)
class PlanPricingTerms:
    price: Decimal
    coin_value_ratio: Decimal
    max_coin_redemption_percent: Decimal
    coins_required: int = 0


@dataclass(frozen=True, slots=True)
class PriceQuote:
    original_price: Decimal
    coins_enabled: bool
    max_coins_allowed: int
    coins_used: int
    coin_discount: Decimal
    final_price: Decimal
    coins_required: int
    meets_minimum_requirement: bool

    @property
    def payment_method(self) -> str:
        return "coins" if self.final_price == ZERO else "razorpay"


def _money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def coins_enabled(terms: PlanPricingTerms) -> bool:
    return terms.coin_value_ratio > ZERO and terms.max_coin_redemption_percent > ZERO


def max_coins_allowed(terms: PlanPricingTerms) -> int:
    if not coins_enabled(terms):
        return 0
    cap = terms.price * terms.max_coin_redemption_percent / Decimal(100) / terms.coin_value_ratio
    return int(cap.to_integral_value(rounding=ROUND_FLOOR))


def price_plan(terms: PlanPricingTerms, *, requested_coins: int, available_coins: int) -> PriceQuote:
    if requested_coins < 0:
        raise ValidationError("requested coins must be non-negative")

    price = _money(terms.price)
    if not coins_enabled(terms):
        return PriceQuote(
            original_price=price,
            coins_enabled=False,
            max_coins_allowed=0,
            coins_used=0,
            coin_discount=ZERO,
            final_price=price,
            coins_required=terms.coins_required,
            meets_minimum_requirement=terms.coins_required <= 0,
        )

    allowed = max_coins_allowed(terms)
    usable = max(0, min(requested_coins, available_coins, allowed))
    discount = _money(Decimal(usable) * terms.coin_value_ratio)
    final_price = max(ZERO, price - discount)
    return PriceQuote(
        original_price=price,
        coins_enabled=True,
        max_coins_allowed=allowed,
        coins_used=usable,
        coin_discount=discount,
        final_price=_money(final_price),
        coins_required=terms.coins_required,
        meets_minimum_requirement=terms.coins_required <= 0 or usable >= terms.coins_required,
    )


def ensure_purchasable(quote: PriceQuote) -> None:
    if not quote.meets_minimum_requirement:
        raise ValidationError(f"plan requires at least {quote.coins_required} coins")


def max_coin_discount(terms: PlanPricingTerms) -> Decimal:
    if not coins_enabled(terms):
        return ZERO
    by_coins = Decimal(max_coins_allowed(terms)) * terms.coin_value_ratio
    by_percent = terms.price * terms.max_coin_redemption_percent / Decimal(100)
    return _money(min(by_coins, by_percent))


@dataclass(frozen=True, slots=True)
class CoinScenario:
    requested_coins: int
    available_coins: int
    can_use_coins: bool
    coins_that_can_be_used: int
    coin_discount: Decimal
    final_price: Decimal
    payment_method: str
    meets_requirements: bool
    errors: tuple[str, ...]


def evaluate_coin_scenario(
    terms: PlanPricingTerms,
    *,
    requested_coins: int,
    available_coins: int,
) -> CoinScenario:
    """Price a plan for an explicit coin amount and explain what blocks it.

    Unlike `price_plan`, an out-of-range request is not an error here: the
    usable amount is clamped and each violated limit is reported in `errors`.
    """
    quote = price_plan(terms, requested_coins=requested_coins, available_coins=available_coins)
    if not quote.coins_enabled:
        return CoinScenario(
            requested_coins=requested_coins,
            available_coins=available_coins,
            can_use_coins=False,
            coins_that_can_be_used=0,
            coin_discount=ZERO,
            final_price=quote.final_price,
            payment_method="card",
            meets_requirements=True,
            errors=("This plan does not support coin redemption",),
        )

    if quote.final_price == ZERO:
        payment_method = "coins"
    elif quote.coins_used > 0:
        payment_method = "coins_and_card"
    else:
        payment_method = "card"

    errors: list[str] = []
    if not quote.meets_minimum_requirement:
        errors.append(f"This plan requires at least {quote.coins_required} coins")
    if requested_coins > available_coins:
        errors.append("Insufficient coins available")
    if requested_coins > quote.max_coins_allowed:
        errors.append(f"Maximum {quote.max_coins_allowed} coins allowed for this plan")

    return CoinScenario(
        requested_coins=requested_coins,
        available_coins=available_coins,
        can_use_coins=True,
        coins_that_can_be_used=quote.coins_used,
        coin_discount=quote.coin_discount,
        final_price=quote.final_price,
        payment_method=payment_method,
        meets_requirements=quote.meets_minimum_requirement,
        errors=tuple(errors),
    )
