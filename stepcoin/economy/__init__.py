from stepcoin.economy.ledger.service import CoinLedgerService
from stepcoin.economy.payments.reconciler import PaymentReconciler
from stepcoin.economy.redemptions.service import RedemptionWorkflow
from stepcoin.economy.steps.service import StepIngestionService, StepsConfigService
from stepcoin.economy.subscriptions.service import SubscriptionService

__all__ = [
    "CoinLedgerService",
    "PaymentReconciler",
    "RedemptionWorkflow",
    "StepIngestionService",
    "StepsConfigService",
    "SubscriptionService",
]
