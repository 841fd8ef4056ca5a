from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import BigInteger, CheckConstraint, Date, DateTime, ForeignKey, Integer, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from stepcoin.db.models.base import Base


class StepsHistory(Base):
    __tablename__ = "steps_history"
    __table_args__ = (
        UniqueConstraint("user_id", "day", name="uq_steps_history_user_day"),
        CheckConstraint("steps >= 0", name="ck_steps_history_steps_non_negative"),
        CheckConstraint("coins_earned >= 0", name="ck_steps_history_coins_non_negative"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    day: Mapped[date] = mapped_column(Date, nullable=False)
    steps: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default=text("0"))
    coins_earned: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
