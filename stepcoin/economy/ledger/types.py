from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from stepcoin.db.models.coin_accounts import UserCoinAccount


@dataclass(slots=True)
class CoinBalance:
    user_id: int
    total_coins_earned: int
    available_coins: int
    redeemed_coins: int
    pending_redeem: int
    is_redeem_blocked: bool = False
    block_reason: str | None = None
    last_redeem_at: datetime | None = None

    @classmethod
    def from_account(cls, account: UserCoinAccount) -> CoinBalance:
        return cls(
            user_id=account.user_id,
            total_coins_earned=account.total_coins_earned,
            available_coins=account.available_coins,
            redeemed_coins=account.redeemed_coins,
            pending_redeem=account.pending_redeem,
            is_redeem_blocked=account.is_redeem_blocked,
            block_reason=account.block_reason,
            last_redeem_at=account.last_redeem_at,
        )
