"""
Wallet service.

The only writer of ledger entries. Every balance change goes through
an account scope: per-account lock, row lock on the account, one
transaction that appends the entry and moves the cached balance.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_engine.config.settings import settings
from ledger_engine.models.account import Account
from ledger_engine.models.enums import (
    AdjustmentDirection,
    EntryKind,
    EntryStatus,
)
from ledger_engine.models.ledger_entry import LedgerEntry
from ledger_engine.repositories.account_repository import AccountRepository
from ledger_engine.repositories.ledger_entry_repository import (
    LedgerEntryRepository,
)
from ledger_engine.services.base_service import BaseService
from ledger_engine.services.events import EventBus, EventType
from ledger_engine.services.wallet.account_locks import (
    AccountLockRegistry,
    account_locks,
)
from ledger_engine.utils.datetime_utils import utc_now
from ledger_engine.utils.exceptions import (
    AccountFrozen,
    AccountNotFound,
    DuplicateEntry,
    EntryNotFound,
    InsufficientFunds,
    InvalidStateTransition,
    LedgerEngineError,
    ReconciliationMismatch,
)
from ledger_engine.utils.money import normalize_stored, require_positive


@dataclass
class LedgerPage:
    """One page of an account statement."""

    entries: list[LedgerEntry]
    total: int
    page: int
    per_page: int

    @property
    def pages(self) -> int:
        """Total number of pages."""
        if self.total == 0:
            return 1
        return (self.total + self.per_page - 1) // self.per_page


@dataclass
class ReconciliationResult:
    """Outcome of comparing cached balance and ledger sum."""

    account_id: int
    cached_balance: Decimal
    ledger_balance: Decimal

    @property
    def matches(self) -> bool:
        """Check if both balances agree at storage precision."""
        return normalize_stored(self.cached_balance) == normalize_stored(
            self.ledger_balance
        )


class WalletService(BaseService):
    """
    Wallet façade over the ledger.

    Credits and debits are idempotent on (source_entry_id, kind, level)
    and on idempotency_key. A repeated write raises DuplicateEntry
    carrying the existing entry.
    """

    def __init__(
        self,
        session: AsyncSession,
        events: EventBus | None = None,
        locks: AccountLockRegistry | None = None,
    ) -> None:
        """
        Initialize wallet service.

        Args:
            session: Async database session
            events: Event bus
            locks: Lock registry, defaults to the process-wide one
        """
        super().__init__(session, events)
        self.account_repo = AccountRepository(session)
        self.entry_repo = LedgerEntryRepository(session)
        self.locks = locks if locks is not None else account_locks
        # Accounts locked by the scope currently open on this session
        self._held: dict[int, Account] = {}

    # ------------------------------------------------------------------
    # Units of work
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def account_scope(
        self, account_id: int, allow_frozen: bool = False
    ) -> AsyncIterator[Account]:
        """
        Serialise a unit of work on one account.

        The outermost scope commits on success and rolls back on error.
        Scopes nested inside it reuse the lock and join its transaction.

        Args:
            account_id: Account to lock
            allow_frozen: Permit entering a frozen account (reconciliation)

        Yields:
            The locked, freshly loaded account

        Raises:
            AccountNotFound: If the account does not exist
            AccountFrozen: If the ledger is frozen and allow_frozen is False
        """
        if account_id in self._held:
            yield self._held[account_id]
            return

        outermost = not self._held
        async with self.locks.hold(account_id):
            account = await self.account_repo.get_for_update(account_id)
            if account is None:
                raise AccountNotFound(account_id)
            if account.ledger_frozen and not allow_frozen:
                raise AccountFrozen(account_id)

            self._held[account_id] = account
            try:
                yield account
                if outermost:
                    await self.session.commit()
            except BaseException:
                if outermost:
                    await self.session.rollback()
                raise
            finally:
                self._held.pop(account_id, None)

    @property
    def in_scope(self) -> bool:
        """Check if a unit of work is open on this session."""
        return bool(self._held)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def credit(
        self,
        account_id: int,
        amount: Decimal,
        kind: EntryKind,
        *,
        source_entry_id: int | None = None,
        level: int = 0,
        idempotency_key: str | None = None,
        currency: str | None = None,
        reference: str | None = None,
        note: str | None = None,
        processed_by: int | None = None,
        extra: dict[str, Any] | None = None,
    ) -> LedgerEntry:
        """
        Append a completed credit and raise the cached balance.

        Raises:
            DuplicateEntry: If the entry already exists
            InvalidAmount: If amount is not positive
        """
        value = require_positive(amount)
        return await self._append(
            account_id,
            value,
            kind,
            status=EntryStatus.COMPLETED,
            source_entry_id=source_entry_id,
            level=level,
            idempotency_key=idempotency_key,
            currency=currency,
            reference=reference,
            note=note,
            processed_by=processed_by,
            extra=extra,
        )

    async def debit(
        self,
        account_id: int,
        amount: Decimal,
        kind: EntryKind,
        *,
        source_entry_id: int | None = None,
        level: int = 0,
        idempotency_key: str | None = None,
        currency: str | None = None,
        reference: str | None = None,
        note: str | None = None,
        processed_by: int | None = None,
        extra: dict[str, Any] | None = None,
    ) -> LedgerEntry:
        """
        Append a completed debit and lower the cached balance.

        Raises:
            DuplicateEntry: If the entry already exists
            InsufficientFunds: If amount exceeds the current balance
            InvalidAmount: If amount is not positive
        """
        value = require_positive(amount)
        return await self._append(
            account_id,
            -value,
            kind,
            status=EntryStatus.COMPLETED,
            source_entry_id=source_entry_id,
            level=level,
            idempotency_key=idempotency_key,
            currency=currency,
            reference=reference,
            note=note,
            processed_by=processed_by,
            extra=extra,
        )

    async def _append(
        self,
        account_id: int,
        amount: Decimal,
        kind: EntryKind,
        *,
        status: EntryStatus,
        source_entry_id: int | None,
        level: int,
        idempotency_key: str | None,
        currency: str | None,
        reference: str | None,
        note: str | None,
        processed_by: int | None,
        extra: dict[str, Any] | None,
        hold_pending: bool = False,
    ) -> LedgerEntry:
        """
        Append one entry under the account scope.

        Validation failures found under the lock are raised after the
        scope exits cleanly, so nothing loaded in the session is expired
        by a rollback.
        """
        lookup = {
            "kind": kind.value,
            "source_entry_id": source_entry_id,
            "level": level,
            "idempotency_key": idempotency_key,
        }
        existing = await self.entry_repo.find_existing(**lookup)
        if existing is not None:
            raise DuplicateEntry(existing)

        outermost = not self.in_scope
        failure: LedgerEngineError | None = None
        entry: LedgerEntry | None = None

        try:
            async with self.account_scope(account_id) as account:
                # Another writer may have appended while we waited
                existing = await self.entry_repo.find_existing(**lookup)
                if existing is not None:
                    failure = DuplicateEntry(existing)
                else:
                    failure = await self._check_funds(
                        account, amount, hold_pending
                    )

                if failure is None:
                    entry = LedgerEntry(
                        account_id=account_id,
                        amount=amount,
                        currency=(currency or settings.default_currency).upper(),
                        kind=kind.value,
                        status=status.value,
                        source_entry_id=source_entry_id,
                        level=level,
                        idempotency_key=idempotency_key,
                        reference=reference,
                        note=note,
                        processed_by=processed_by,
                        extra=extra,
                    )
                    if status == EntryStatus.COMPLETED:
                        account.wallet_balance = account.wallet_balance + amount
                        entry.balance_after = account.wallet_balance
                    self.session.add(entry)
                    await self.session.flush()
        except IntegrityError as e:
            # Unique constraint lost a race with another process
            if not outermost:
                raise
            existing = await self.entry_repo.find_existing(**lookup)
            if existing is None:
                raise
            raise DuplicateEntry(existing) from e

        if failure is not None:
            raise failure

        self.logger.info(
            "Ledger entry appended",
            extra={
                "entry_id": entry.id,
                "account_id": account_id,
                "kind": kind.value,
                "amount": str(amount),
                "status": status.value,
                "source_entry_id": source_entry_id,
                "level": level,
                "balance_after": str(entry.balance_after),
            },
        )
        return entry

    async def _check_funds(
        self, account: Account, amount: Decimal, hold_pending: bool
    ) -> InsufficientFunds | None:
        """Return InsufficientFunds if a debit cannot be covered."""
        if amount >= 0:
            return None

        available = account.wallet_balance
        if hold_pending:
            available -= await self.entry_repo.sum_pending_withdrawals(
                account.id
            )

        if -amount > available:
            self.logger.warning(
                "Insufficient balance for debit",
                extra={
                    "account_id": account.id,
                    "available": str(available),
                    "requested": str(-amount),
                },
            )
            return InsufficientFunds(account.id, -amount, available)
        return None

    async def admin_adjust(
        self,
        account_id: int,
        amount: Decimal,
        direction: AdjustmentDirection,
        note: str,
        admin_id: int,
        idempotency_key: str | None = None,
    ) -> LedgerEntry:
        """
        Manually credit or debit an account.

        Args:
            account_id: Target account
            amount: Positive amount
            direction: credit or debit
            note: Reason, stored on the entry
            admin_id: Operator performing the adjustment
            idempotency_key: Optional key to make retries safe

        Returns:
            Created admin_adjustment entry
        """
        write = self.credit if direction == AdjustmentDirection.CREDIT else self.debit
        entry = await write(
            account_id,
            amount,
            EntryKind.ADMIN_ADJUSTMENT,
            idempotency_key=idempotency_key,
            note=note,
            processed_by=admin_id,
        )
        self.logger.warning(
            "Admin balance adjustment",
            extra={
                "account_id": account_id,
                "admin_id": admin_id,
                "direction": direction.value,
                "amount": str(amount),
                "note": note,
            },
        )
        return entry

    # ------------------------------------------------------------------
    # Withdrawals
    # ------------------------------------------------------------------

    async def request_withdrawal(
        self,
        account_id: int,
        amount: Decimal,
        destination: str,
        idempotency_key: str | None = None,
    ) -> LedgerEntry:
        """
        Create a pending withdrawal that holds funds until reviewed.

        The balance only moves when an operator approves.

        Raises:
            InsufficientFunds: If amount exceeds balance minus other holds
        """
        value = require_positive(amount)
        entry = await self._append(
            account_id,
            -value,
            EntryKind.WITHDRAWAL,
            status=EntryStatus.PENDING,
            source_entry_id=None,
            level=0,
            idempotency_key=idempotency_key,
            currency=None,
            reference=destination,
            note=None,
            processed_by=None,
            extra=None,
            hold_pending=True,
        )
        await self.events.emit(
            EventType.WITHDRAWAL_REQUESTED,
            account_id,
            entry_id=entry.id,
            amount=str(value),
            destination=destination,
        )
        return entry

    async def approve_withdrawal(
        self, entry_id: int, admin_id: int
    ) -> LedgerEntry:
        """
        Complete a pending withdrawal.

        The balance is re-checked under the account lock.

        Raises:
            EntryNotFound: If entry does not exist
            InvalidStateTransition: If entry is not a pending withdrawal
            InsufficientFunds: If the balance no longer covers it
        """
        account_id = await self._pending_withdrawal_owner(entry_id)
        failure: LedgerEngineError | None = None

        async with self.account_scope(account_id) as account:
            entry = await self.entry_repo.get_for_update(entry_id)
            if entry.status != EntryStatus.PENDING:
                failure = InvalidStateTransition(
                    f"Withdrawal {entry_id} is already {entry.status}"
                )
            elif -entry.amount > account.wallet_balance:
                failure = InsufficientFunds(
                    account_id, -entry.amount, account.wallet_balance
                )
            else:
                account.wallet_balance = account.wallet_balance + entry.amount
                entry.status = EntryStatus.COMPLETED.value
                entry.balance_after = account.wallet_balance
                entry.processed_by = admin_id
                entry.processed_at = utc_now()
                await self.session.flush()

        if failure is not None:
            raise failure

        self.logger.info(
            "Withdrawal approved",
            extra={
                "entry_id": entry_id,
                "account_id": account_id,
                "admin_id": admin_id,
                "amount": str(-entry.amount),
                "balance_after": str(entry.balance_after),
            },
        )
        await self.events.emit(
            EventType.WITHDRAWAL_PROCESSED,
            account_id,
            entry_id=entry_id,
            status=EntryStatus.COMPLETED.value,
        )
        return entry

    async def reject_withdrawal(
        self, entry_id: int, admin_id: int, note: str | None = None
    ) -> LedgerEntry:
        """
        Reject a pending withdrawal, releasing its hold.

        Raises:
            EntryNotFound: If entry does not exist
            InvalidStateTransition: If entry is not a pending withdrawal
        """
        account_id = await self._pending_withdrawal_owner(entry_id)
        failure: LedgerEngineError | None = None

        async with self.account_scope(account_id):
            entry = await self.entry_repo.get_for_update(entry_id)
            if entry.status != EntryStatus.PENDING:
                failure = InvalidStateTransition(
                    f"Withdrawal {entry_id} is already {entry.status}"
                )
            else:
                entry.status = EntryStatus.REJECTED.value
                entry.note = note
                entry.processed_by = admin_id
                entry.processed_at = utc_now()
                await self.session.flush()

        if failure is not None:
            raise failure

        self.logger.info(
            "Withdrawal rejected",
            extra={
                "entry_id": entry_id,
                "account_id": account_id,
                "admin_id": admin_id,
                "note": note,
            },
        )
        await self.events.emit(
            EventType.WITHDRAWAL_PROCESSED,
            account_id,
            entry_id=entry_id,
            status=EntryStatus.REJECTED.value,
        )
        return entry

    async def _pending_withdrawal_owner(self, entry_id: int) -> int:
        """Resolve the owner of a withdrawal entry."""
        stmt = select(LedgerEntry.account_id, LedgerEntry.kind).where(
            LedgerEntry.id == entry_id
        )
        row = (await self.session.execute(stmt)).one_or_none()
        if row is None:
            raise EntryNotFound(entry_id)
        if row.kind != EntryKind.WITHDRAWAL:
            raise InvalidStateTransition(
                f"Entry {entry_id} is a {row.kind}, not a withdrawal"
            )
        return row.account_id

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _load(self, account_id: int) -> Account:
        stmt = (
            select(Account)
            .where(Account.id == account_id)
            .execution_options(populate_existing=True)
        )
        account = (await self.session.execute(stmt)).scalar_one_or_none()
        if account is None:
            raise AccountNotFound(account_id)
        return account

    async def balance_of(self, account_id: int) -> Decimal:
        """Get the cached balance."""
        account = await self._load(account_id)
        return account.wallet_balance

    async def available_balance(self, account_id: int) -> Decimal:
        """Get balance minus funds held by pending withdrawals."""
        balance = await self.balance_of(account_id)
        held = await self.entry_repo.sum_pending_withdrawals(account_id)
        return balance - held

    async def ledger_of(
        self, account_id: int, page: int = 1, per_page: int = 50
    ) -> LedgerPage:
        """Get one page of the account statement, newest first."""
        await self._load(account_id)
        entries, total = await self.entry_repo.find_account_ledger(
            account_id, page=page, per_page=per_page
        )
        return LedgerPage(
            entries=entries, total=total, page=max(page, 1), per_page=per_page
        )

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def reconcile(self, account_id: int) -> ReconciliationResult:
        """
        Compare cached balance with the sum of completed entries.

        On mismatch the account is frozen for writes, the operator is
        alerted and ReconciliationMismatch is raised.

        Raises:
            ReconciliationMismatch: If the balances disagree
        """
        async with self.account_scope(account_id, allow_frozen=True) as account:
            ledger_balance = await self.entry_repo.sum_completed(account_id)
            result = ReconciliationResult(
                account_id=account_id,
                cached_balance=account.wallet_balance,
                ledger_balance=ledger_balance,
            )
            if not result.matches:
                account.ledger_frozen = True
                await self.session.flush()

        if result.matches:
            self.logger.debug(
                "Reconciliation passed",
                extra={
                    "account_id": account_id,
                    "balance": str(result.cached_balance),
                },
            )
            return result

        self.logger.critical(
            "Reconciliation mismatch, account ledger frozen",
            extra={
                "account_id": account_id,
                "cached_balance": str(result.cached_balance),
                "ledger_balance": str(result.ledger_balance),
            },
        )
        await self.events.emit(
            EventType.RECONCILIATION_FAILED,
            account_id,
            cached_balance=str(result.cached_balance),
            ledger_balance=str(result.ledger_balance),
        )
        raise ReconciliationMismatch(
            account_id, result.cached_balance, result.ledger_balance
        )

    async def unfreeze(self, account_id: int, admin_id: int) -> None:
        """
        Lift a reconciliation freeze after an operator repaired the ledger.

        The account must reconcile cleanly first.
        """
        failure: LedgerEngineError | None = None
        async with self.account_scope(account_id, allow_frozen=True) as account:
            ledger_balance = await self.entry_repo.sum_completed(account_id)
            if normalize_stored(ledger_balance) != normalize_stored(
                account.wallet_balance
            ):
                failure = ReconciliationMismatch(
                    account_id, account.wallet_balance, ledger_balance
                )
            else:
                account.ledger_frozen = False
                await self.session.flush()

        if failure is not None:
            raise failure

        self.logger.warning(
            "Account ledger unfrozen",
            extra={"account_id": account_id, "admin_id": admin_id},
        )
