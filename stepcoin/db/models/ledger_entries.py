from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from stepcoin.db.models.base import Base


class CoinLedgerEntry(Base):
    __tablename__ = "coin_ledger_entries"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_coin_ledger_entries_amount_positive"),
        CheckConstraint(
            "entry_type IN ('STEP_CREDIT','REDEMPTION_RESERVE','REDEMPTION_SETTLE',"
            "'REDEMPTION_RELEASE','SUBSCRIPTION_DEBIT')",
            name="ck_coin_ledger_entries_entry_type",
        ),
        Index("idx_coin_ledger_user_created", "user_id", "created_at"),
        Index("idx_coin_ledger_type", "entry_type"),
        Index("idx_coin_ledger_payment_intent", "payment_intent_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    entry_type: Mapped[str] = mapped_column(String(32), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    available_after: Mapped[int] = mapped_column(Integer, nullable=False)
    pending_after: Mapped[int] = mapped_column(Integer, nullable=False)
    redemption_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("coin_redemptions.id"),
        nullable=True,
    )
    payment_intent_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("payment_intents.id"),
        nullable=True,
    )
    idempotency_key: Mapped[str] = mapped_column(String(96), unique=True, nullable=False)
    metadata_: Mapped[dict[str, object]] = mapped_column(
        "metadata",
        JSONB,
        nullable=False,
        server_default=text("'{}'::jsonb"),
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
