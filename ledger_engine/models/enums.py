"""
Enumerations shared by the ledger models.

Values are stored as plain strings so that migrations never need
to alter a database enum type.
"""

from enum import StrEnum


class AccountStatus(StrEnum):
    """Account status enumeration."""

    ACTIVE = "active"
    INACTIVE = "inactive"  # Keeps its place in the tree, earns nothing


class EntryKind(StrEnum):
    """Ledger entry kind enumeration."""

    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    PLAN_PURCHASE = "plan_purchase"
    COMMISSION = "commission"
    MATRIX_PAYOUT = "matrix_payout"
    MATRIX_REENTRY_DEBIT = "matrix_reentry_debit"
    ADMIN_ADJUSTMENT = "admin_adjustment"
    INVESTMENT_PAYOUT = "investment_payout"


# Completed entries of these kinds trigger commission distribution
COMMISSIONABLE_KINDS = frozenset({EntryKind.DEPOSIT, EntryKind.PLAN_PURCHASE})


class EntryStatus(StrEnum):
    """Ledger entry status enumeration."""

    PENDING = "pending"  # Withdrawal awaiting approval
    COMPLETED = "completed"
    REJECTED = "rejected"


class AdjustmentDirection(StrEnum):
    """Direction of an admin balance adjustment."""

    CREDIT = "credit"
    DEBIT = "debit"


class PlanFamily(StrEnum):
    """Plan family enumeration."""

    FIXED_TERM = "fixed_term"
    MATRIX = "matrix"


class InvestmentStatus(StrEnum):
    """Fixed-term investment status enumeration."""

    PENDING = "pending"  # Funding entry not yet completed
    ACTIVE = "active"
    MATURED = "matured"  # Term elapsed, payout not requested
    CLOSED = "closed"  # Paid out, terminal


class MatrixPositionStatus(StrEnum):
    """Matrix position status enumeration."""

    FILLING = "filling"
    COMPLETED = "completed"
    RE_ENTERED = "re_entered"
