from stepcoin.db.models import append_only  # noqa: F401
from stepcoin.db.models.coin_accounts import UserCoinAccount
from stepcoin.db.models.coin_redemption_history import CoinRedemptionHistory
from stepcoin.db.models.coin_redemptions import CoinRedemption
from stepcoin.db.models.ledger_entries import CoinLedgerEntry
from stepcoin.db.models.payment_intents import PaymentIntent
from stepcoin.db.models.steps_config import StepsConfig
from stepcoin.db.models.steps_history import StepsHistory
from stepcoin.db.models.subscription_plans import SubscriptionPlan
from stepcoin.db.models.user_subscriptions import UserSubscription
from stepcoin.db.models.users import User

__all__ = [
    "CoinLedgerEntry",
    "CoinRedemption",
    "CoinRedemptionHistory",
    "PaymentIntent",
    "StepsConfig",
    "StepsHistory",
    "SubscriptionPlan",
    "User",
    "UserCoinAccount",
    "UserSubscription",
]
