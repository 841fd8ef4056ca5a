from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, Index, Integer, Numeric, String, text
from sqlalchemy.orm import Mapped, mapped_column

from stepcoin.db.models.base import Base


class StepsConfig(Base):
    __tablename__ = "steps_config"
    __table_args__ = (
        CheckConstraint("threshold_steps > 0", name="ck_steps_config_threshold_positive"),
        CheckConstraint("coins_per_threshold > 0", name="ck_steps_config_coins_positive"),
        CheckConstraint("max_coins_per_day > 0", name="ck_steps_config_daily_cap_positive"),
        CheckConstraint(
            "reset_policy IN ('daily','continuous')",
            name="ck_steps_config_reset_policy",
        ),
        Index(
            "uq_steps_config_single_active",
            "is_active",
            unique=True,
            postgresql_where=text("is_active"),
        ),
        Index("idx_steps_config_created", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    threshold_steps: Mapped[int] = mapped_column(Integer, nullable=False)
    coins_per_threshold: Mapped[int] = mapped_column(Integer, nullable=False)
    coin_value_in_rupees: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    coin_value_in_usd: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    max_coins_per_day: Mapped[int] = mapped_column(Integer, nullable=False)
    reset_policy: Mapped[str] = mapped_column(String(16), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
