from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from stepcoin.db.models.base import Base


class CoinRedemption(Base):
    __tablename__ = "coin_redemptions"
    __table_args__ = (
        CheckConstraint("coins_requested >= 1", name="ck_coin_redemptions_coins_requested_positive"),
        CheckConstraint("amount_requested >= 0", name="ck_coin_redemptions_amount_non_negative"),
        CheckConstraint(
            "coins_approved IS NULL OR (coins_approved >= 1 AND coins_approved <= coins_requested)",
            name="ck_coin_redemptions_coins_approved_range",
        ),
        CheckConstraint(
            "status IN ('pending','approved','rejected','cancelled')",
            name="ck_coin_redemptions_status",
        ),
        Index("idx_coin_redemptions_user_created", "user_id", "created_at"),
        Index("idx_coin_redemptions_status_created", "status", "created_at"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    coins_requested: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_requested: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    coins_approved: Mapped[int | None] = mapped_column(Integer, nullable=True)
    amount_approved: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, server_default=text("'USD'"))
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    request_type: Mapped[str] = mapped_column(String(32), nullable=False)
    payment_method: Mapped[str | None] = mapped_column(String(32), nullable=True)
    payment_details: Mapped[dict[str, object] | None] = mapped_column(JSONB, nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
