from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import BigInteger, Boolean, CheckConstraint, Date, DateTime, ForeignKey, Integer, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from stepcoin.db.models.base import Base


class UserCoinAccount(Base):
    __tablename__ = "user_coin_accounts"
    __table_args__ = (
        CheckConstraint("available_coins >= 0", name="ck_user_coin_accounts_available_non_negative"),
        CheckConstraint("redeemed_coins >= 0", name="ck_user_coin_accounts_redeemed_non_negative"),
        CheckConstraint("pending_redeem >= 0", name="ck_user_coin_accounts_pending_non_negative"),
        CheckConstraint(
            "available_coins + redeemed_coins + pending_redeem = total_coins_earned",
            name="ck_user_coin_accounts_balance_identity",
        ),
        CheckConstraint(
            "current_steps_since_threshold >= 0",
            name="ck_user_coin_accounts_remainder_non_negative",
        ),
        CheckConstraint("coins_earned_today >= 0", name="ck_user_coin_accounts_daily_non_negative"),
        CheckConstraint(
            "redeemed_limit_per_day >= 0",
            name="ck_user_coin_accounts_redeem_limit_non_negative",
        ),
    )

    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), primary_key=True)
    total_coins_earned: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    available_coins: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    redeemed_coins: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    pending_redeem: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    current_steps_since_threshold: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default=text("0"),
    )
    total_steps: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default=text("0"))
    coins_earned_today: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    last_threshold: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default=text("0"))
    last_reset_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_redeem_blocked: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    block_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    redeemed_limit_per_day: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    last_redeem_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
