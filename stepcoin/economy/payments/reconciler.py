from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stepcoin.db.models.payment_intents import PaymentIntent
from stepcoin.db.models.user_subscriptions import UserSubscription
from stepcoin.db.repo.coin_accounts_repo import CoinAccountsRepo
from stepcoin.db.repo.payment_intents_repo import PaymentIntentsRepo
from stepcoin.db.repo.subscriptions_repo import SubscriptionPlansRepo, UserSubscriptionsRepo
from stepcoin.db.repo.users_repo import UsersRepo
from stepcoin.economy.errors import (
    ActiveSubscriptionExistsError,
    AmountMismatchError,
    ConfigurationError,
    GatewayError,
    NotFoundError,
    PaymentNotCapturedError,
    SignatureError,
    StateConflictError,
    ValidationError,
)
from stepcoin.economy.ledger.service import CoinLedgerService
from stepcoin.economy.payments.gateway import PaymentGateway, parse_payment_entity
from stepcoin.economy.payments.signatures import is_valid_payment_signature
from stepcoin.economy.payments.types import (
    OrderCreationResult,
    PaymentCompletionResult,
    SubscriptionActivation,
    WebhookOutcome,
    to_minor_units,
)
from stepcoin.economy.subscriptions.pricing import ensure_purchasable, price_plan
from stepcoin.economy.subscriptions.service import terms_from_plan

logger = structlog.get_logger(__name__)

WEBHOOK_PAYMENT_CAPTURED = "payment.captured"
WEBHOOK_PAYMENT_FAILED = "payment.failed"
WEBHOOK_PAYMENT_AUTHORIZED = "payment.authorized"
WEBHOOK_ORDER_PAID = "order.paid"


def _activation(subscription: UserSubscription) -> SubscriptionActivation:
    return SubscriptionActivation(
        subscription_id=subscription.id,
        plan_id=subscription.plan_id,
        status=subscription.status,
        start_date=subscription.start_date,
        end_date=subscription.end_date,
        payment_method=subscription.payment_method,
        coins_used=subscription.coins_used,
        coin_discount=Decimal(subscription.coin_discount),
        final_price=Decimal(subscription.final_price),
    )


def _completion(
    intent: PaymentIntent,
    subscription: UserSubscription | None,
    *,
    idempotent_replay: bool,
) -> PaymentCompletionResult:
    return PaymentCompletionResult(
        payment_intent_id=intent.id,
        status=intent.status,
        activation=_activation(subscription) if subscription is not None else None,
        idempotent_replay=idempotent_replay,
        gateway_payment_id=intent.gateway_payment_id,
        amount=Decimal(intent.amount),
        currency=intent.currency,
    )


def build_receipt(*, user_id: int, now_utc: datetime) -> str:
    return f"sub_{user_id}_{int(now_utc.timestamp() * 1000)}"


def _entity(event: dict[str, Any], kind: str) -> dict[str, Any] | None:
    payload = event.get("payload")
    if not isinstance(payload, dict):
        return None
    wrapper = payload.get(kind)
    if not isinstance(wrapper, dict):
        return None
    entity = wrapper.get("entity")
    return entity if isinstance(entity, dict) else None


class PaymentReconciler:
    """Converges order creation, client verification and gateway webhooks.

    Every completion signal ends in `complete_intent`, whose compare-and-swap on
    the intent status makes activation happen exactly once per payment intent.
    """

    @staticmethod
    async def create_order(
        session: AsyncSession,
        *,
        user_id: int,
        plan_id: int,
        use_coins: bool,
        coins_to_use: int,
        gateway: PaymentGateway | None,
        now_utc: datetime,
        default_currency: str = "INR",
    ) -> OrderCreationResult:
        if coins_to_use < 0:
            raise ValidationError("coins_to_use must be non-negative")

        user = await UsersRepo.get_by_id(session, user_id)
        if user is None:
            raise NotFoundError(f"user {user_id} not found")
        plan = await SubscriptionPlansRepo.get_active_by_id(session, plan_id)
        if plan is None:
            raise NotFoundError(f"plan {plan_id} not found")

        if await UserSubscriptionsRepo.get_active_by_user(session, user_id=user_id) is not None:
            raise ActiveSubscriptionExistsError(f"user {user_id} already has an active subscription")

        await CoinAccountsRepo.ensure_exists(session, user_id=user_id, now_utc=now_utc)
        account = await CoinAccountsRepo.get_by_user_id(session, user_id)
        available = account.available_coins if account is not None else 0

        quote = price_plan(
            terms_from_plan(plan),
            requested_coins=coins_to_use if use_coins else 0,
            available_coins=available,
        )
        ensure_purchasable(quote)

        currency = plan.currency or default_currency
        intent = await PaymentIntentsRepo.create(
            session,
            intent=PaymentIntent(
                id=uuid4(),
                user_id=user_id,
                plan_id=plan.id,
                receipt=build_receipt(user_id=user_id, now_utc=now_utc),
                original_price=quote.original_price,
                amount=quote.final_price,
                currency=currency,
                coins_used=quote.coins_used,
                coin_discount=quote.coin_discount,
                status="pending",
                metadata_={
                    "plan_name": plan.name,
                    "original_price": str(quote.original_price),
                    "payment_type": quote.payment_method,
                },
                created_at=now_utc,
                updated_at=now_utc,
            ),
        )

        if quote.payment_method == "coins":
            completion = await PaymentReconciler.complete_intent(
                session,
                payment_intent_id=intent.id,
                gateway_payment_id=None,
                payment_method="coins",
                now_utc=now_utc,
            )
            logger.info(
                "payment_intent_activated_with_coins",
                user_id=user_id,
                payment_intent_id=str(intent.id),
                coins_used=quote.coins_used,
            )
            return OrderCreationResult(
                payment_intent_id=intent.id,
                plan_id=plan.id,
                original_price=quote.original_price,
                coins_used=quote.coins_used,
                coin_discount=quote.coin_discount,
                final_price=quote.final_price,
                currency=currency,
                activation=completion.activation,
            )

        if gateway is None:
            raise ConfigurationError("payment gateway is not configured")

        order = await gateway.create_order(
            amount_minor=to_minor_units(quote.final_price),
            currency=currency,
            receipt=intent.receipt,
            notes={
                "user_id": str(user_id),
                "plan_id": str(plan.id),
                "payment_intent_id": str(intent.id),
                "coins_used": str(quote.coins_used),
                "coin_discount": str(quote.coin_discount),
            },
        )
        intent.gateway_order_id = order.order_id
        intent.updated_at = now_utc
        await session.flush()

        logger.info(
            "payment_intent_created",
            user_id=user_id,
            payment_intent_id=str(intent.id),
            gateway_order_id=order.order_id,
            amount_minor=order.amount_minor,
        )
        return OrderCreationResult(
            payment_intent_id=intent.id,
            plan_id=plan.id,
            original_price=quote.original_price,
            coins_used=quote.coins_used,
            coin_discount=quote.coin_discount,
            final_price=quote.final_price,
            currency=currency,
            gateway_order=order,
        )

    @staticmethod
    async def complete_intent(
        session: AsyncSession,
        *,
        payment_intent_id: UUID,
        gateway_payment_id: str | None,
        payment_method: str,
        now_utc: datetime,
    ) -> PaymentCompletionResult:
        intent = await PaymentIntentsRepo.try_complete(
            session,
            payment_intent_id=payment_intent_id,
            gateway_payment_id=gateway_payment_id,
            now_utc=now_utc,
        )
        if intent is None:
            existing = await PaymentIntentsRepo.get_by_id(session, payment_intent_id)
            if existing is None:
                raise NotFoundError(f"payment intent {payment_intent_id} not found")
            if existing.status != "completed":
                raise StateConflictError(f"payment intent {payment_intent_id} is {existing.status}")
            subscription = await UserSubscriptionsRepo.get_by_payment_intent_id(
                session,
                payment_intent_id=payment_intent_id,
            )
            logger.info("payment_intent_already_completed", payment_intent_id=str(payment_intent_id))
            return _completion(existing, subscription, idempotent_replay=True)

        if await UserSubscriptionsRepo.get_active_by_user(session, user_id=intent.user_id) is not None:
            raise ActiveSubscriptionExistsError(f"user {intent.user_id} already has an active subscription")

        plan = await SubscriptionPlansRepo.get_by_id(session, intent.plan_id)
        if plan is None:
            raise NotFoundError(f"plan {intent.plan_id} not found")

        try:
            subscription = await UserSubscriptionsRepo.create(
                session,
                subscription=UserSubscription(
                    user_id=intent.user_id,
                    plan_id=intent.plan_id,
                    payment_intent_id=intent.id,
                    start_date=now_utc,
                    end_date=now_utc + timedelta(days=plan.duration_days),
                    status="active",
                    payment_status="paid",
                    payment_method=payment_method,
                    gateway_payment_id=intent.gateway_payment_id,
                    auto_renew=False,
                    coins_used=intent.coins_used,
                    coin_discount=intent.coin_discount,
                    final_price=intent.amount,
                    created_at=now_utc,
                    updated_at=now_utc,
                ),
            )
        except IntegrityError as exc:
            raise ActiveSubscriptionExistsError(
                f"user {intent.user_id} already has an active subscription"
            ) from exc

        if intent.coins_used > 0:
            await CoinLedgerService.debit(
                session,
                user_id=intent.user_id,
                amount=intent.coins_used,
                idempotency_key=f"debit:payment_intent:{intent.id}",
                payment_intent_id=intent.id,
                now_utc=now_utc,
            )

        logger.info(
            "payment_intent_completed",
            user_id=intent.user_id,
            payment_intent_id=str(intent.id),
            subscription_id=subscription.id,
            coins_used=intent.coins_used,
            payment_method=payment_method,
        )
        return _completion(intent, subscription, idempotent_replay=False)

    @staticmethod
    async def verify_payment(
        session: AsyncSession,
        *,
        user_id: int,
        payment_intent_id: UUID,
        gateway_order_id: str,
        gateway_payment_id: str,
        signature: str,
        key_secret: str,
        gateway: PaymentGateway,
        now_utc: datetime,
    ) -> PaymentCompletionResult:
        if not is_valid_payment_signature(
            key_secret=key_secret,
            gateway_order_id=gateway_order_id,
            gateway_payment_id=gateway_payment_id,
            signature=signature,
        ):
            logger.warning("payment_verify_invalid_signature", payment_intent_id=str(payment_intent_id))
            raise SignatureError("payment signature mismatch")

        intent = await PaymentIntentsRepo.get_by_id(session, payment_intent_id)
        if intent is None or intent.user_id != user_id:
            raise NotFoundError(f"payment intent {payment_intent_id} not found")
        if intent.gateway_order_id != gateway_order_id:
            raise ValidationError("gateway order does not belong to this payment intent")

        if intent.status == "completed":
            subscription = await UserSubscriptionsRepo.get_by_payment_intent_id(
                session,
                payment_intent_id=intent.id,
            )
            return _completion(intent, subscription, idempotent_replay=True)
        if intent.status == "failed":
            raise StateConflictError(f"payment intent {payment_intent_id} has failed")

        payment = await gateway.fetch_payment(gateway_payment_id)
        if payment.order_id is not None and payment.order_id != gateway_order_id:
            raise ValidationError("gateway payment belongs to a different order")
        if payment.status != "captured":
            raise PaymentNotCapturedError(f"payment {gateway_payment_id} is {payment.status}")
        expected_minor = to_minor_units(intent.amount)
        if payment.amount_minor != expected_minor:
            logger.warning(
                "payment_verify_amount_mismatch",
                payment_intent_id=str(intent.id),
                expected_amount_minor=expected_minor,
                gateway_amount_minor=payment.amount_minor,
            )
            raise AmountMismatchError("gateway amount does not match payment intent")

        return await PaymentReconciler.complete_intent(
            session,
            payment_intent_id=intent.id,
            gateway_payment_id=gateway_payment_id,
            payment_method="razorpay",
            now_utc=now_utc,
        )

    @staticmethod
    async def _find_intent_for_payment(
        session: AsyncSession,
        *,
        payment_id: str,
        order_id: str | None,
    ) -> PaymentIntent | None:
        intent = await PaymentIntentsRepo.get_by_gateway_payment_id(session, payment_id)
        if intent is None and order_id:
            intent = await PaymentIntentsRepo.get_by_gateway_order_id(session, order_id)
        return intent

    @staticmethod
    async def _complete_from_webhook(
        session: AsyncSession,
        *,
        event_type: str,
        intent: PaymentIntent,
        gateway_payment_id: str | None,
        amount_minor: int,
        now_utc: datetime,
    ) -> WebhookOutcome:
        if intent.status == "completed":
            return WebhookOutcome(event_type=event_type, result="already_completed", payment_intent_id=intent.id)
        if intent.status == "failed":
            return WebhookOutcome(event_type=event_type, result="ignored_terminal", payment_intent_id=intent.id)

        expected_minor = to_minor_units(intent.amount)
        if amount_minor != expected_minor:
            logger.warning(
                "payment_webhook_amount_mismatch",
                event_type=event_type,
                payment_intent_id=str(intent.id),
                expected_amount_minor=expected_minor,
                gateway_amount_minor=amount_minor,
            )
            return WebhookOutcome(event_type=event_type, result="amount_mismatch", payment_intent_id=intent.id)

        completion = await PaymentReconciler.complete_intent(
            session,
            payment_intent_id=intent.id,
            gateway_payment_id=gateway_payment_id,
            payment_method="razorpay",
            now_utc=now_utc,
        )
        result = "already_completed" if completion.idempotent_replay else "completed"
        return WebhookOutcome(event_type=event_type, result=result, payment_intent_id=intent.id)

    @staticmethod
    async def _transition_from_webhook(
        session: AsyncSession,
        *,
        event_type: str,
        intent: PaymentIntent,
        to_status: str,
        gateway_payment_id: str,
        now_utc: datetime,
    ) -> WebhookOutcome:
        updated = await PaymentIntentsRepo.try_transition_from_pending(
            session,
            payment_intent_id=intent.id,
            to_status=to_status,
            gateway_payment_id=gateway_payment_id,
            now_utc=now_utc,
        )
        if updated is None:
            return WebhookOutcome(event_type=event_type, result="ignored_state", payment_intent_id=intent.id)
        logger.info(f"payment_intent_{to_status}", payment_intent_id=str(intent.id))
        return WebhookOutcome(event_type=event_type, result=to_status, payment_intent_id=intent.id)

    @staticmethod
    async def _fail_from_webhook(
        session: AsyncSession,
        *,
        event_type: str,
        intent: PaymentIntent,
        gateway_payment_id: str,
        now_utc: datetime,
    ) -> WebhookOutcome:
        if intent.gateway_payment_id != gateway_payment_id:
            # Razorpay allows retrying on the same order, so a declined attempt leaves the intent open.
            logger.info(
                "payment_attempt_failed",
                payment_intent_id=str(intent.id),
                gateway_payment_id=gateway_payment_id,
                status=intent.status,
            )
            return WebhookOutcome(event_type=event_type, result="attempt_failed", payment_intent_id=intent.id)

        updated = await PaymentIntentsRepo.try_fail_attempt(
            session,
            payment_intent_id=intent.id,
            gateway_payment_id=gateway_payment_id,
            now_utc=now_utc,
        )
        if updated is None:
            return WebhookOutcome(event_type=event_type, result="ignored_state", payment_intent_id=intent.id)
        logger.info("payment_intent_failed", payment_intent_id=str(intent.id))
        return WebhookOutcome(event_type=event_type, result="failed", payment_intent_id=intent.id)

    @staticmethod
    async def handle_webhook_event(
        session: AsyncSession,
        *,
        event: dict[str, Any],
        now_utc: datetime,
    ) -> WebhookOutcome:
        event_type = str(event.get("event") or "")

        if event_type == WEBHOOK_ORDER_PAID:
            order = _entity(event, "order")
            if order is None or not order.get("id"):
                raise ValidationError("order.paid event without order entity")
            intent = await PaymentIntentsRepo.get_by_gateway_order_id(session, str(order["id"]))
            if intent is None:
                return WebhookOutcome(event_type=event_type, result="intent_not_found")
            payment_entity = _entity(event, "payment")
            try:
                amount_paid = int(order.get("amount_paid", order.get("amount", -1)))
            except (TypeError, ValueError) as exc:
                raise ValidationError("order.paid event with malformed amount") from exc
            return await PaymentReconciler._complete_from_webhook(
                session,
                event_type=event_type,
                intent=intent,
                gateway_payment_id=str(payment_entity["id"]) if payment_entity and payment_entity.get("id") else None,
                amount_minor=amount_paid,
                now_utc=now_utc,
            )

        if event_type in {WEBHOOK_PAYMENT_CAPTURED, WEBHOOK_PAYMENT_FAILED, WEBHOOK_PAYMENT_AUTHORIZED}:
            entity = _entity(event, "payment")
            if entity is None:
                raise ValidationError(f"{event_type} event without payment entity")
            try:
                payment = parse_payment_entity(entity)
            except GatewayError as exc:
                raise ValidationError(f"{event_type} event with malformed payment entity") from exc

            intent = await PaymentReconciler._find_intent_for_payment(
                session,
                payment_id=payment.payment_id,
                order_id=payment.order_id,
            )
            if intent is None:
                return WebhookOutcome(event_type=event_type, result="intent_not_found")

            if event_type == WEBHOOK_PAYMENT_CAPTURED:
                return await PaymentReconciler._complete_from_webhook(
                    session,
                    event_type=event_type,
                    intent=intent,
                    gateway_payment_id=payment.payment_id,
                    amount_minor=payment.amount_minor,
                    now_utc=now_utc,
                )
            if event_type == WEBHOOK_PAYMENT_FAILED:
                return await PaymentReconciler._fail_from_webhook(
                    session,
                    event_type=event_type,
                    intent=intent,
                    gateway_payment_id=payment.payment_id,
                    now_utc=now_utc,
                )
            return await PaymentReconciler._transition_from_webhook(
                session,
                event_type=event_type,
                intent=intent,
                to_status="authorized",
                gateway_payment_id=payment.payment_id,
                now_utc=now_utc,
            )

        logger.info("payment_webhook_event_ignored", event_type=event_type)
        return WebhookOutcome(event_type=event_type, result="ignored")
