from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from stepcoin.db.models.base import Base


class PaymentIntent(Base):
    __tablename__ = "payment_intents"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','authorized','completed','failed')",
            name="ck_payment_intents_status",
        ),
        CheckConstraint("amount >= 0", name="ck_payment_intents_amount_non_negative"),
        CheckConstraint("coins_used >= 0", name="ck_payment_intents_coins_used_non_negative"),
        CheckConstraint("coin_discount >= 0", name="ck_payment_intents_discount_non_negative"),
        CheckConstraint(
            "status <> 'completed' OR completed_at IS NOT NULL",
            name="ck_payment_intents_completed_at",
        ),
        Index("idx_payment_intents_user_created", "user_id", "created_at"),
        Index("idx_payment_intents_status", "status"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    plan_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("subscription_plans.id"), nullable=False)
    gateway_order_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    gateway_payment_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    receipt: Mapped[str] = mapped_column(String(64), nullable=False)
    original_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    coins_used: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    coin_discount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, server_default=text("0"))
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    metadata_: Mapped[dict[str, object]] = mapped_column(
        "metadata",
        JSONB,
        nullable=False,
        server_default=text("'{}'::jsonb"),
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
