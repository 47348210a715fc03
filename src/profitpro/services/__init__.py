from .auth_service import AuthService
from .ledger_service import LedgerService
from .inventory_service import InventoryService
from .user_service import UserService
from .reporting_service import ReportingService
from .trend_service import TrendAnalysisService
from .actions import Actions, ActionResult

__all__ = [
    "AuthService",
    "LedgerService",
    "InventoryService",
    "UserService",
    "ReportingService",
    "TrendAnalysisService",
    "Actions",
    "ActionResult",
]
