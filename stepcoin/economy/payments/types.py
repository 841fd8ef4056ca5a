from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(slots=True)
class GatewayOrder:
    order_id: str
    amount_minor: int
    currency: str
    receipt: str
    status: str


@dataclass(slots=True)
class GatewayPayment:
    payment_id: str
    order_id: str | None
    amount_minor: int
    currency: str
    status: str
    method: str | None = None
    raw: dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class SubscriptionActivation:
    subscription_id: int
    plan_id: int
    status: str
    start_date: datetime
    end_date: datetime
    payment_method: str
    coins_used: int
    coin_discount: Decimal
    final_price: Decimal


@dataclass(slots=True)
class OrderCreationResult:
    payment_intent_id: UUID
    plan_id: int
    original_price: Decimal
    coins_used: int
    coin_discount: Decimal
    final_price: Decimal
    currency: str
    gateway_order: GatewayOrder | None = None
    activation: SubscriptionActivation | None = None

    @property
    def activated_with_coins(self) -> bool:
        return self.activation is not None


@dataclass(slots=True)
class PaymentCompletionResult:
    payment_intent_id: UUID
    status: str
    activation: SubscriptionActivation | None
    idempotent_replay: bool
    gateway_payment_id: str | None = None
    amount: Decimal = Decimal("0")
    currency: str = "INR"


@dataclass(slots=True)
class WebhookOutcome:
    event_type: str
    result: str
    payment_intent_id: UUID | None = None
