from .charges import ChargeService
from .ledger import LedgerService
from .notifier import ChangeNotifier
from .reconciler import ConfirmationReconciler
from .repository import LedgerRepository
from .tokens import InMemoryTokenRegistry

__all__ = [
    "ChangeNotifier",
    "ChargeService",
    "ConfirmationReconciler",
    "InMemoryTokenRegistry",
    "LedgerRepository",
    "LedgerService",
]
