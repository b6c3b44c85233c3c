"""
Exception handling utilities.

Defines the engine's exception types and the categories callers use to
decide whether to surface, retry or swallow a failure.
"""

from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy.exc import OperationalError

if TYPE_CHECKING:
    from ledger_engine.models.ledger_entry import LedgerEntry


class LedgerEngineError(Exception):
    """Base class for all engine errors."""

    pass


class AccountNotFound(LedgerEngineError):
    """Raised when an account id or referral code does not resolve."""

    def __init__(self, account_ref: int | str) -> None:
        self.account_ref = account_ref
        super().__init__(f"Account {account_ref} not found")


class EntryNotFound(LedgerEngineError):
    """Raised when a ledger entry id does not resolve."""

    def __init__(self, entry_id: int) -> None:
        self.entry_id = entry_id
        super().__init__(f"Ledger entry {entry_id} not found")


class InvestmentNotFound(LedgerEngineError):
    """Raised when an investment id does not resolve."""

    def __init__(self, investment_id: int) -> None:
        self.investment_id = investment_id
        super().__init__(f"Investment {investment_id} not found")


class PositionNotFound(LedgerEngineError):
    """Raised when a matrix position id does not resolve."""

    def __init__(self, position_id: int) -> None:
        self.position_id = position_id
        super().__init__(f"Matrix position {position_id} not found")


class InvalidPlacement(LedgerEngineError):
    """Raised when a referral edge would be invalid (cycle, self, re-parent)."""

    pass


class DuplicateEntry(LedgerEngineError):
    """
    Raised when an entry with the same source/kind/level or idempotency
    key already exists.

    Callers treat this as success: the existing entry is attached.
    """

    def __init__(self, existing: "LedgerEntry | None") -> None:
        self.existing = existing
        entry_id = existing.id if existing is not None else None
        super().__init__(f"Ledger entry already exists (id={entry_id})")


class InsufficientFunds(LedgerEngineError):
    """Raised when a debit exceeds the balance."""

    def __init__(
        self, account_id: int, requested: Decimal, available: Decimal
    ) -> None:
        self.account_id = account_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient funds on account {account_id}: "
            f"requested {requested}, available {available}"
        )


class ReconciliationMismatch(LedgerEngineError):
    """Raised when the cached balance differs from the ledger sum."""

    def __init__(
        self, account_id: int, cached: Decimal, ledger_sum: Decimal
    ) -> None:
        self.account_id = account_id
        self.cached = cached
        self.ledger_sum = ledger_sum
        super().__init__(
            f"Balance mismatch on account {account_id}: "
            f"cached {cached}, ledger {ledger_sum}"
        )


class AccountFrozen(LedgerEngineError):
    """Raised when writing to an account frozen by reconciliation."""

    def __init__(self, account_id: int) -> None:
        self.account_id = account_id
        super().__init__(f"Ledger for account {account_id} is frozen")


class InvalidAmount(LedgerEngineError):
    """Raised for zero, negative or malformed amounts."""

    pass


class DepositConflict(LedgerEngineError):
    """Raised when a provider reference is redelivered with different details."""

    def __init__(self, provider_reference: str, existing: "LedgerEntry") -> None:
        self.provider_reference = provider_reference
        self.existing = existing
        super().__init__(
            f"Deposit {provider_reference!r} was already credited as entry "
            f"{existing.id} to account {existing.account_id} "
            f"for {existing.amount} {existing.currency}"
        )


class InvalidStateTransition(LedgerEngineError):
    """Raised when an entity is asked to move to a state it cannot reach."""

    pass


class PlanNotFound(LedgerEngineError):
    """Raised when a plan id does not resolve."""

    pass


class PlanUnavailable(LedgerEngineError):
    """Raised when a plan is inactive or the amount is outside its corridor."""

    pass


class PlanConfigurationError(LedgerEngineError):
    """Raised when plan parameters are inconsistent."""

    pass


class AlreadyOnBoard(LedgerEngineError):
    """Raised when joining a board the account is already filling."""

    pass


# Exception categories based on handling strategy

# Retried by background jobs, never shown to the member
RETRYABLE = (
    OperationalError,  # Connection drops, lock timeouts
    InsufficientFunds,  # Matrix re-entry funded from balance
)

# Surfaced synchronously to the caller
USER_FACING = (
    InvalidPlacement,
    InsufficientFunds,
    InvalidAmount,
    AccountNotFound,
    EntryNotFound,
    InvestmentNotFound,
    PositionNotFound,
    AccountFrozen,
    PlanNotFound,
    PlanUnavailable,
    AlreadyOnBoard,
    InvalidStateTransition,
)


def is_retryable(exc: Exception) -> bool:
    """
    Check if a background job should retry after exc.

    Args:
        exc: Exception to check

    Returns:
        True if the operation can be retried later
    """
    return isinstance(exc, RETRYABLE)


def is_user_facing(exc: Exception) -> bool:
    """
    Check if exc should be reported back to the member.

    Args:
        exc: Exception to check

    Returns:
        True if exception is a user-facing validation error
    """
    return isinstance(exc, USER_FACING)
