from stepcoin.db.repo.coin_accounts_repo import CoinAccountsRepo
from stepcoin.db.repo.coin_redemptions_repo import CoinRedemptionHistoryRepo, CoinRedemptionsRepo
from stepcoin.db.repo.ledger_repo import LedgerRepo
from stepcoin.db.repo.payment_intents_repo import PaymentIntentsRepo
from stepcoin.db.repo.steps_repo import StepsConfigRepo, StepsHistoryRepo
from stepcoin.db.repo.subscriptions_repo import SubscriptionPlansRepo, UserSubscriptionsRepo
from stepcoin.db.repo.users_repo import UsersRepo

__all__ = [
    "CoinAccountsRepo",
    "CoinRedemptionHistoryRepo",
    "CoinRedemptionsRepo",
    "LedgerRepo",
    "PaymentIntentsRepo",
    "StepsConfigRepo",
    "StepsHistoryRepo",
    "SubscriptionPlansRepo",
    "UserSubscriptionsRepo",
    "UsersRepo",
]
