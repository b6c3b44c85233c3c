"""
Business logic services.

LedgerEngine is the façade; the wallet, referral, investment and matrix
packages hold the individual components.
"""

from ledger_engine.services.account_service import AccountService
from ledger_engine.services.base_service import (
    BaseService,
    log_operation,
    transaction,
)
from ledger_engine.services.engine import (
    AuditResult,
    LedgerEngine,
    PurchaseResult,
)
from ledger_engine.services.events import (
    EngineEvent,
    EventBus,
    EventType,
    event_bus,
)
from ledger_engine.services.plan_service import PlanService

__all__ = [
    # Base
    "BaseService",
    "transaction",
    "log_operation",
    # Events
    "EventBus",
    "EventType",
    "EngineEvent",
    "event_bus",
    # Services
    "AccountService",
    "PlanService",
    "LedgerEngine",
    "PurchaseResult",
    "AuditResult",
]
