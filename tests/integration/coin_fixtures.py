from __future__ import annotations

import hashlib
import hmac
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import func, select

from stepcoin.db.models.ledger_entries import CoinLedgerEntry
from stepcoin.db.models.subscription_plans import SubscriptionPlan
from stepcoin.db.models.user_subscriptions import UserSubscription
from stepcoin.db.repo.coin_accounts_repo import CoinAccountsRepo
from stepcoin.db.repo.subscriptions_repo import SubscriptionPlansRepo
from stepcoin.db.repo.users_repo import UsersRepo
from stepcoin.db.session import SessionLocal
from stepcoin.economy.ledger.service import CoinLedgerService
from stepcoin.economy.ledger.types import CoinBalance
from stepcoin.economy.payments.types import GatewayOrder, GatewayPayment
from stepcoin.economy.steps.service import StepsConfigService
from stepcoin.economy.steps.types import StepsConfigValues

UTC = timezone.utc
KEY_SECRET = "rzp_test_secret"
WEBHOOK_SECRET = "hook-secret"


async def _create_user(full_name: str = "Step Walker") -> int:
    async with SessionLocal.begin() as session:
        user = await UsersRepo.create(session, full_name=full_name)
        return user.id


async def _seed_coins(*, user_id: int, amount: int, now_utc: datetime) -> None:
    async with SessionLocal.begin() as session:
        await CoinAccountsRepo.ensure_exists(session, user_id=user_id, now_utc=now_utc)
        await CoinLedgerService.credit(
            session,
            user_id=user_id,
            amount=amount,
            idempotency_key=f"seed:{user_id}:{uuid4().hex}",
            now_utc=now_utc,
        )


async def _balance(user_id: int, now_utc: datetime | None = None) -> CoinBalance:
    async with SessionLocal.begin() as session:
        return await CoinLedgerService.get_balance(
            session,
            user_id=user_id,
            now_utc=now_utc or datetime.now(UTC),
        )


def _assert_identity(balance: CoinBalance) -> None:
    assert balance.available_coins + balance.redeemed_coins + balance.pending_redeem == balance.total_coins_earned


async def _create_plan(
    *,
    price: str = "499.00",
    coin_value_ratio: str = "1.5",
    max_coin_redemption_percent: str = "50",
    coins_required: int = 0,
    duration_days: int = 30,
    now_utc: datetime,
) -> int:
    async with SessionLocal.begin() as session:
        plan = await SubscriptionPlansRepo.create(
            session,
            plan=SubscriptionPlan(
                name=f"Plan {price}",
                description=None,
                price=Decimal(price),
                currency="INR",
                duration_days=duration_days,
                features=["coaching"],
                coin_value_ratio=Decimal(coin_value_ratio),
                max_coin_redemption_percent=Decimal(max_coin_redemption_percent),
                coins_required=coins_required,
                is_active=True,
                created_at=now_utc,
                updated_at=now_utc,
            ),
        )
        return plan.id


async def _create_steps_config(
    *,
    now_utc: datetime,
    threshold_steps: int = 10000,
    coins_per_threshold: int = 2,
    max_coins_per_day: int = 6,
    reset_policy: str = "continuous",
) -> int:
    async with SessionLocal.begin() as session:
        config = await StepsConfigService.create(
            session,
            values=StepsConfigValues(
                threshold_steps=threshold_steps,
                coins_per_threshold=coins_per_threshold,
                max_coins_per_day=max_coins_per_day,
                reset_policy=reset_policy,
            ),
            is_active=True,
            created_by="integration-test",
            now_utc=now_utc,
        )
        return config.id


async def _count_subscriptions(user_id: int) -> int:
    async with SessionLocal.begin() as session:
        stmt = select(func.count(UserSubscription.id)).where(UserSubscription.user_id == user_id)
        return int((await session.execute(stmt)).scalar_one())


async def _count_ledger_entries(user_id: int, entry_type: str) -> int:
    async with SessionLocal.begin() as session:
        stmt = select(func.count(CoinLedgerEntry.id)).where(
            CoinLedgerEntry.user_id == user_id,
            CoinLedgerEntry.entry_type == entry_type,
        )
        return int((await session.execute(stmt)).scalar_one())


def _payment_signature(order_id: str, payment_id: str) -> str:
    return hmac.new(KEY_SECRET.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


def _webhook_signature(body: bytes) -> str:
    return hmac.new(WEBHOOK_SECRET.encode(), body, hashlib.sha256).hexdigest()


class StubGateway:
    def __init__(self) -> None:
        self.orders: list[GatewayOrder] = []
        self.payments: dict[str, GatewayPayment] = {}

    async def create_order(
        self,
        *,
        amount_minor: int,
        currency: str,
        receipt: str,
        notes: dict[str, str],
    ) -> GatewayOrder:
        order = GatewayOrder(
            order_id=f"order_{len(self.orders) + 1}",
            amount_minor=amount_minor,
            currency=currency,
            receipt=receipt,
            status="created",
        )
        self.orders.append(order)
        return order

    def capture(self, *, order: GatewayOrder, payment_id: str, amount_minor: int | None = None) -> GatewayPayment:
        payment = GatewayPayment(
            payment_id=payment_id,
            order_id=order.order_id,
            amount_minor=order.amount_minor if amount_minor is None else amount_minor,
            currency=order.currency,
            status="captured",
        )
        self.payments[payment_id] = payment
        return payment

    async def fetch_payment(self, payment_id: str) -> GatewayPayment:
        return self.payments[payment_id]
