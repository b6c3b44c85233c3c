"""
Ledger engine façade.

Single entry point for the collaborators around the engine: payment
confirmation, withdrawals, admin tools, plan purchases and dashboards.

Money-moving calls raise synchronously. Follow-up work that fans out to
other accounts (commissions, board qualification) is attempted right
after the originating entry commits; failures there are logged and left
to the retry jobs, never reported to the member.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ledger_engine.config.settings import settings
from ledger_engine.models.account import Account
from ledger_engine.models.enums import (
    AccountStatus,
    AdjustmentDirection,
    EntryKind,
)
from ledger_engine.models.ledger_entry import LedgerEntry
from ledger_engine.repositories.account_repository import AccountRepository
from ledger_engine.services.account_service import AccountService
from ledger_engine.services.base_service import BaseService, log_operation
from ledger_engine.services.events import EventBus
from ledger_engine.services.investment.investment_service import (
    InvestmentService,
    InvestmentView,
    SweepResult,
)
from ledger_engine.services.matrix.matrix_service import (
    MatrixBoardService,
    PositionView,
    validate_matrix_plan,
)
from ledger_engine.services.plan_service import PlanService
from ledger_engine.services.referral.commission_distributor import (
    CommissionDistributor,
    DistributionResult,
)
from ledger_engine.services.referral.graph import NetworkView, ReferralGraph
from ledger_engine.services.wallet.account_locks import AccountLockRegistry
from ledger_engine.services.wallet.wallet_service import (
    LedgerPage,
    ReconciliationResult,
    WalletService,
)
from ledger_engine.utils.datetime_utils import utc_now
from ledger_engine.utils.exceptions import (
    AlreadyOnBoard,
    DepositConflict,
    DuplicateEntry,
    InsufficientFunds,
    LedgerEngineError,
    PlanUnavailable,
    ReconciliationMismatch,
)
from ledger_engine.utils.money import normalize_stored, require_money


@dataclass
class PurchaseResult:
    """Outcome of a plan purchase."""

    entry: LedgerEntry
    plan_id: int
    investment_id: int | None = None
    position_id: int | None = None
    distribution: DistributionResult | None = None
    credited_position_id: int | None = None


@dataclass
class AuditResult:
    """Outcome of a reconciliation audit run."""

    checked: int = 0
    mismatched: list[int] = field(default_factory=list)
    last_account_id: int = 0


class LedgerEngine(BaseService):
    """
    Façade over the wallet, referral, investment and matrix services.

    All services share one session and one wallet so that nested units
    of work join the same transaction.
    """

    def __init__(
        self,
        session: AsyncSession,
        events: EventBus | None = None,
        clock: Callable[[], datetime] = utc_now,
        locks: AccountLockRegistry | None = None,
    ) -> None:
        """
        Initialize ledger engine.

        Args:
            session: Async database session
            events: Event bus, defaults to the process-wide bus
            clock: Returns the current time (injected in tests)
            locks: Account lock registry
        """
        super().__init__(session, events)
        self.clock = clock
        self.wallet = WalletService(session, events=self.events, locks=locks)
        self.accounts = AccountService(session, events=self.events)
        self.plans = PlanService(session)
        self.graph = ReferralGraph(session)
        self.commissions = CommissionDistributor(
            session, wallet=self.wallet, events=self.events
        )
        self.investments = InvestmentService(
            session, wallet=self.wallet, events=self.events, clock=clock
        )
        self.matrix = MatrixBoardService(
            session, wallet=self.wallet, events=self.events
        )
        self.account_repo = AccountRepository(session)

    # ------------------------------------------------------------------
    # Accounts and referral tree
    # ------------------------------------------------------------------

    async def create_account(
        self, username: str, referrer_code: str | None = None
    ) -> Account:
        """Create an account, optionally placed under a referrer."""
        return await self.accounts.create_account(username, referrer_code)

    async def register_account(
        self, new_account_id: int, referrer_code: str
    ) -> Account:
        """Place an account under the owner of referrer_code."""
        return await self.accounts.register_account(new_account_id, referrer_code)

    async def set_account_status(
        self, account_id: int, status: AccountStatus, admin_id: int | None = None
    ) -> Account:
        """Activate or deactivate an account."""
        return await self.accounts.set_status(account_id, status, admin_id)

    async def network_of(self, account_id: int) -> NetworkView:
        """Get the downline tree with per-level counts."""
        return await self.graph.downline(account_id)

    # ------------------------------------------------------------------
    # Deposits and withdrawals
    # ------------------------------------------------------------------

    async def notify_deposit_confirmed(
        self,
        account_id: int,
        amount: Decimal,
        currency: str,
        provider_reference: str,
    ) -> LedgerEntry:
        """
        Credit a confirmed external deposit and pay commissions.

        Safe under at-least-once delivery: the provider reference is the
        idempotency key, and a repeated notification re-runs the
        distribution to fill levels a crash may have missed.

        Returns:
            The deposit entry (existing one on redelivery)

        Raises:
            InvalidAmount: Amount not positive or finer than the minor unit
            DepositConflict: The reference was credited with different
                account, amount or currency
        """
        value = require_money(amount, currency)
        try:
            entry = await self.wallet.credit(
                account_id,
                value,
                EntryKind.DEPOSIT,
                idempotency_key=f"deposit:{provider_reference}",
                currency=currency,
                reference=provider_reference,
            )
        except DuplicateEntry as e:
            self.logger.info(
                "Duplicate deposit notification",
                extra={
                    "account_id": account_id,
                    "provider_reference": provider_reference,
                    "entry_id": e.existing.id,
                },
            )
            entry = e.existing
            if (
                entry.account_id != account_id
                or normalize_stored(entry.amount) != normalize_stored(value)
                or entry.currency != currency.upper()
            ):
                self.logger.warning(
                    "Conflicting deposit redelivery",
                    extra={
                        "provider_reference": provider_reference,
                        "account_id": account_id,
                        "amount": str(value),
                        "entry_id": entry.id,
                    },
                )
                raise DepositConflict(provider_reference, entry) from e

        await self._distribute(entry)
        return entry

    async def request_withdrawal(
        self,
        account_id: int,
        amount: Decimal,
        destination: str,
        idempotency_key: str | None = None,
    ) -> LedgerEntry:
        """Create a pending withdrawal for operator review."""
        value = require_money(amount, settings.default_currency)
        return await self.wallet.request_withdrawal(
            account_id, value, destination, idempotency_key
        )

    async def approve_withdrawal(self, entry_id: int, admin_id: int) -> LedgerEntry:
        """Approve a pending withdrawal."""
        return await self.wallet.approve_withdrawal(entry_id, admin_id)

    async def reject_withdrawal(
        self, entry_id: int, admin_id: int, note: str | None = None
    ) -> LedgerEntry:
        """Reject a pending withdrawal."""
        return await self.wallet.reject_withdrawal(entry_id, admin_id, note)

    async def admin_adjust_balance(
        self,
        account_id: int,
        amount: Decimal,
        direction: AdjustmentDirection,
        note: str,
        admin_id: int,
    ) -> LedgerEntry:
        """Manually credit or debit an account."""
        value = require_money(amount, settings.default_currency)
        return await self.wallet.admin_adjust(
            account_id, value, AdjustmentDirection(direction), note, admin_id
        )

    # ------------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------------

    async def purchase_plan(
        self,
        account_id: int,
        plan_id: int,
        amount: Decimal,
        idempotency_key: str | None = None,
    ) -> PurchaseResult:
        """
        Buy a fixed-term plan or join a matrix board.

        The purchase debit and the investment or board position commit
        together. Commissions and the sponsor's board qualification
        follow.

        Raises:
            PlanNotFound: Unknown plan
            PlanUnavailable: Plan inactive or amount outside its corridor
            AlreadyOnBoard: Account already filling this board
            InsufficientFunds: Balance does not cover the amount
            DuplicateEntry: idempotency_key already used
        """
        value = require_money(amount, settings.default_currency)
        plan = await self.plans.get(plan_id)

        if not plan.active:
            raise PlanUnavailable(f"Plan {plan.name!r} is not available")
        if not plan.accepts(value):
            raise PlanUnavailable(
                f"Amount {value} is outside {plan.name!r} limits "
                f"[{plan.min_deposit}, {plan.max_deposit}]"
            )
        if plan.is_matrix:
            validate_matrix_plan(plan)
            if await self.matrix.is_filling(account_id, plan.id):
                raise AlreadyOnBoard(
                    f"Account {account_id} is already on board {plan.name!r}"
                )
        if idempotency_key is not None:
            existing = await self.wallet.entry_repo.find_existing(
                EntryKind.PLAN_PURCHASE.value, idempotency_key=idempotency_key
            )
            if existing is not None:
                raise DuplicateEntry(existing)

        failure: LedgerEngineError | None = None
        result: PurchaseResult | None = None

        async with self.wallet.account_scope(account_id) as account:
            if account.wallet_balance < value:
                failure = InsufficientFunds(account_id, value, account.wallet_balance)
            else:
                entry = await self.wallet.debit(
                    account_id,
                    value,
                    EntryKind.PLAN_PURCHASE,
                    idempotency_key=idempotency_key,
                    extra={"plan_id": plan.id, "plan_family": plan.family},
                )
                result = PurchaseResult(entry=entry, plan_id=plan.id)
                if plan.is_matrix:
                    position = await self.matrix.join_board(account_id, plan, entry)
                    result.position_id = position.id
                else:
                    investment = await self.investments.open_investment(
                        account_id, plan, value, entry
                    )
                    result.investment_id = investment.id

        if failure is not None:
            raise failure

        self.logger.info(
            "Plan purchased",
            extra={
                "account_id": account_id,
                "plan_id": result.plan_id,
                "amount": str(value),
                "entry_id": result.entry.id,
                "investment_id": result.investment_id,
                "position_id": result.position_id,
            },
        )

        result.distribution = await self._distribute(result.entry)
        if result.position_id is not None:
            result.credited_position_id = await self._qualify(result.entry)
        return result

    async def request_investment_payout(self, investment_id: int) -> LedgerEntry:
        """Pay out a matured investment."""
        return await self.investments.request_payout(investment_id)

    async def run_maturity_sweep(self, auto_payout: bool | None = None) -> SweepResult:
        """Persist maturities and optionally pay them out."""
        return await self.investments.sweep_matured(auto_payout)

    # ------------------------------------------------------------------
    # Follow-up work (logged, retried by jobs)
    # ------------------------------------------------------------------

    async def _distribute(self, entry: LedgerEntry) -> DistributionResult | None:
        entry_id = entry.id
        try:
            return await self.commissions.distribute(entry_id)
        except Exception as e:
            self.logger.exception(
                f"Commission distribution failed for entry {entry_id}: {e}"
            )
            await self._recover(entry)
            return None

    async def _qualify(self, entry: LedgerEntry) -> int | None:
        entry_id = entry.id
        try:
            return await self.matrix.record_qualification(entry_id)
        except Exception as e:
            self.logger.exception(
                f"Matrix qualification failed for entry {entry_id}: {e}"
            )
            await self._recover(entry)
            return None

    async def _recover(self, *objects: Any) -> None:
        """Reset the session after a failed follow-up and reload objects."""
        if self.session.in_transaction():
            await self.session.rollback()
        for obj in objects:
            await self.session.refresh(obj)

    @log_operation
    async def retry_commissions(
        self, lookback: timedelta, batch_size: int = 500
    ) -> int:
        """
        Re-run distribution for recent source entries.

        Already-paid levels are skipped, so this only fills gaps. The
        whole window is walked in ID order, batch_size entries at a time.

        Args:
            lookback: How far back to look
            batch_size: Source entries loaded per query

        Returns:
            Number of commission entries created
        """
        since = self.clock() - lookback
        after_id = 0
        created = 0
        while True:
            sources = await self.wallet.entry_repo.find_commissionable_since(
                since, after_id=after_id, limit=batch_size
            )
            source_ids = [source.id for source in sources]
            for source_id in source_ids:
                try:
                    result = await self.commissions.distribute(source_id)
                except LedgerEngineError as e:
                    self.logger.warning(
                        f"Commission retry deferred for entry {source_id}: {e}"
                    )
                    continue
                created += len(result.paid)
            if len(source_ids) < batch_size:
                return created
            after_id = source_ids[-1]

    async def retry_matrix_completions(self) -> list[int]:
        """Complete filled board positions that are still open."""
        return await self.matrix.retry_due_completions()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def balance_of(self, account_id: int) -> Decimal:
        """Get the cached wallet balance."""
        return await self.wallet.balance_of(account_id)

    async def available_balance(self, account_id: int) -> Decimal:
        """Get balance minus pending withdrawal holds."""
        return await self.wallet.available_balance(account_id)

    async def ledger_of(
        self, account_id: int, page: int = 1, per_page: int = 50
    ) -> LedgerPage:
        """Get a page of the account statement."""
        return await self.wallet.ledger_of(account_id, page, per_page)

    async def investments_of(self, account_id: int) -> list[InvestmentView]:
        """Get live investment views."""
        return await self.investments.investments_of(account_id)

    async def matrix_position_of(
        self, account_id: int, plan_id: int | None = None
    ) -> list[PositionView]:
        """Get live board position views."""
        return await self.matrix.positions_of(account_id, plan_id)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def reconcile(self, account_id: int) -> ReconciliationResult:
        """Check cached balance against the ledger."""
        return await self.wallet.reconcile(account_id)

    async def unfreeze_account(self, account_id: int, admin_id: int) -> None:
        """Lift a reconciliation freeze once the ledger is repaired."""
        await self.wallet.unfreeze(account_id, admin_id)

    @log_operation
    async def audit_balances(
        self, after_id: int = 0, batch_size: int = 500
    ) -> AuditResult:
        """
        Reconcile a batch of accounts.

        Mismatching accounts are frozen by reconcile and reported.

        Args:
            after_id: Start after this account ID
            batch_size: Accounts per run

        Returns:
            AuditResult
        """
        result = AuditResult(last_account_id=after_id)
        account_ids = await self.account_repo.find_ids_batch(after_id, batch_size)
        for account_id in account_ids:
            try:
                await self.wallet.reconcile(account_id)
            except ReconciliationMismatch:
                result.mismatched.append(account_id)
            result.checked += 1
            result.last_account_id = account_id
        return result
