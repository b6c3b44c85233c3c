"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from ledger_engine.models.account import Account
from ledger_engine.models.base import Base
from ledger_engine.models.enums import (
    COMMISSIONABLE_KINDS,
    AccountStatus,
    AdjustmentDirection,
    EntryKind,
    EntryStatus,
    InvestmentStatus,
    MatrixPositionStatus,
    PlanFamily,
)
from ledger_engine.models.investment import FixedTermInvestment
from ledger_engine.models.ledger_entry import LedgerEntry
from ledger_engine.models.matrix_position import (
    MatrixPosition,
    MatrixQualification,
)
from ledger_engine.models.plan import Plan

__all__ = [
    "Base",
    # Accounts
    "Account",
    "AccountStatus",
    # Ledger
    "LedgerEntry",
    "EntryKind",
    "EntryStatus",
    "AdjustmentDirection",
    "COMMISSIONABLE_KINDS",
    # Plans
    "Plan",
    "PlanFamily",
    # Investments
    "FixedTermInvestment",
    "InvestmentStatus",
    # Matrix
    "MatrixPosition",
    "MatrixQualification",
    "MatrixPositionStatus",
]
