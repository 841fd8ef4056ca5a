from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from stepcoin.api.routes.auth_helpers import require_user_id
from stepcoin.api.routes.errors import as_http_error
from stepcoin.core.config import get_settings
from stepcoin.db.session import SessionLocal
from stepcoin.economy.errors import CoinEconomyError, ConfigurationError
from stepcoin.economy.payments.gateway import get_payment_gateway
from stepcoin.economy.payments.reconciler import PaymentReconciler
from stepcoin.economy.payments.types import SubscriptionActivation

router = APIRouter(tags=["payments"])
logger = structlog.get_logger(__name__)


class CreateOrderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    plan_id: int = Field(alias="planId", gt=0)
    use_coins: bool = False
    coins_to_use: int = Field(default=0, ge=0)


class GatewayOrderResponse(BaseModel):
    order_id: str
    amount: int
    currency: str
    receipt: str
    key_id: str


class ActivationResponse(BaseModel):
    subscription_id: int
    plan_id: int
    status: str
    start_date: datetime
    end_date: datetime
    payment_method: str
    coins_used: int
    coin_discount: Decimal
    final_price: Decimal


class CreateOrderResponse(BaseModel):
    payment_intent_id: UUID
    plan_id: int
    original_price: Decimal
    coins_used: int
    coin_discount: Decimal
    final_price: Decimal
    currency: str
    activated_with_coins: bool
    order: GatewayOrderResponse | None = None
    subscription: ActivationResponse | None = None


class VerifyPaymentRequest(BaseModel):
    payment_intent_id: UUID
    gateway_order_id: str = Field(min_length=1, max_length=64)
    gateway_payment_id: str = Field(min_length=1, max_length=64)
    signature: str = Field(min_length=1, max_length=256)


class VerifyPaymentResponse(BaseModel):
    payment_intent_id: UUID
    status: str
    idempotent_replay: bool
    gateway_payment_id: str | None
    amount: Decimal
    currency: str
    subscription: ActivationResponse | None


def _activation_response(activation: SubscriptionActivation | None) -> ActivationResponse | None:
    if activation is None:
        return None
    return ActivationResponse(
        subscription_id=activation.subscription_id,
        plan_id=activation.plan_id,
        status=activation.status,
        start_date=activation.start_date,
        end_date=activation.end_date,
        payment_method=activation.payment_method,
        coins_used=activation.coins_used,
        coin_discount=activation.coin_discount,
        final_price=activation.final_price,
    )


@router.post("/payments/razorpay/create-order", response_model=CreateOrderResponse)
async def create_order(
    payload: CreateOrderRequest,
    user_id: int = Depends(require_user_id),
) -> CreateOrderResponse:
    settings = get_settings()
    now_utc = datetime.now(timezone.utc)

    try:
        gateway = get_payment_gateway()
    except ConfigurationError:
        # Coins-only purchases never reach the gateway.
        gateway = None

    try:
        async with SessionLocal.begin() as session:
            result = await PaymentReconciler.create_order(
                session,
                user_id=user_id,
                plan_id=payload.plan_id,
                use_coins=payload.use_coins,
                coins_to_use=payload.coins_to_use,
                gateway=gateway,
                now_utc=now_utc,
                default_currency=settings.default_currency,
            )
    except CoinEconomyError as exc:
        logger.info(
            "payment_order_rejected",
            user_id=user_id,
            plan_id=payload.plan_id,
            error_type=type(exc).__name__,
        )
        raise as_http_error(exc) from exc

    order = None
    if result.gateway_order is not None:
        order = GatewayOrderResponse(
            order_id=result.gateway_order.order_id,
            amount=result.gateway_order.amount_minor,
            currency=result.gateway_order.currency,
            receipt=result.gateway_order.receipt,
            key_id=settings.razorpay_key_id,
        )
    return CreateOrderResponse(
        payment_intent_id=result.payment_intent_id,
        plan_id=result.plan_id,
        original_price=result.original_price,
        coins_used=result.coins_used,
        coin_discount=result.coin_discount,
        final_price=result.final_price,
        currency=result.currency,
        activated_with_coins=result.activated_with_coins,
        order=order,
        subscription=_activation_response(result.activation),
    )


@router.post("/payments/razorpay/verify", response_model=VerifyPaymentResponse)
async def verify_payment(
    payload: VerifyPaymentRequest,
    user_id: int = Depends(require_user_id),
) -> VerifyPaymentResponse:
    settings = get_settings()
    now_utc = datetime.now(timezone.utc)

    try:
        gateway = get_payment_gateway()
        async with SessionLocal.begin() as session:
            result = await PaymentReconciler.verify_payment(
                session,
                user_id=user_id,
                payment_intent_id=payload.payment_intent_id,
                gateway_order_id=payload.gateway_order_id,
                gateway_payment_id=payload.gateway_payment_id,
                signature=payload.signature,
                key_secret=settings.razorpay_key_secret,
                gateway=gateway,
                now_utc=now_utc,
            )
    except CoinEconomyError as exc:
        logger.info(
            "payment_verify_rejected",
            user_id=user_id,
            payment_intent_id=str(payload.payment_intent_id),
            error_type=type(exc).__name__,
        )
        raise as_http_error(exc, signature_status_code=400) from exc

    return VerifyPaymentResponse(
        payment_intent_id=result.payment_intent_id,
        status=result.status,
        idempotent_replay=result.idempotent_replay,
        gateway_payment_id=result.gateway_payment_id,
        amount=result.amount,
        currency=result.currency,
        subscription=_activation_response(result.activation),
    )
