"""
Fixed-term investment service.

Lifecycle: pending -> active -> matured -> closed.

Maturity is evaluated lazily on every read; the sweep only persists
what reads already report and optionally pays out.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from ledger_engine.config.settings import settings
from ledger_engine.models.enums import EntryKind, EntryStatus, InvestmentStatus
from ledger_engine.models.investment import FixedTermInvestment
from ledger_engine.models.ledger_entry import LedgerEntry
from ledger_engine.models.plan import Plan
from ledger_engine.repositories.investment_repository import (
    InvestmentRepository,
)
from ledger_engine.repositories.ledger_entry_repository import (
    LedgerEntryRepository,
)
from ledger_engine.services.base_service import BaseService, log_operation
from ledger_engine.services.events import EventBus, EventType
from ledger_engine.services.investment.profit_calculator import ProfitCalculator
from ledger_engine.services.wallet.wallet_service import WalletService
from ledger_engine.utils.datetime_utils import ensure_utc, utc_now
from ledger_engine.utils.exceptions import (
    DuplicateEntry,
    InvalidStateTransition,
    InvestmentNotFound,
    LedgerEngineError,
)


@dataclass
class InvestmentView:
    """Live view of an investment for dashboards."""

    investment_id: int
    plan_id: int
    principal: Decimal
    monthly_rate: Decimal
    duration_days: int
    status: str
    started_at: datetime | None
    matures_at: datetime | None
    accrued_profit: Decimal
    expected_profit: Decimal
    progress_percent: float
    payout_entry_id: int | None

    @property
    def payout_amount(self) -> Decimal:
        """Amount credited at payout."""
        return self.principal + self.expected_profit


@dataclass
class SweepResult:
    """Result of a maturity sweep."""

    matured: list[int] = field(default_factory=list)
    paid_out: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)


class InvestmentService(BaseService):
    """Opens, evaluates and pays out fixed-term investments."""

    def __init__(
        self,
        session: AsyncSession,
        wallet: WalletService | None = None,
        events: EventBus | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize investment service.

        Args:
            session: Async database session
            wallet: Wallet service sharing the session
            events: Event bus
            clock: Returns the current time
        """
        super().__init__(session, events)
        self.wallet = wallet or WalletService(session, events=self.events)
        self.investment_repo = InvestmentRepository(session)
        self.entry_repo = LedgerEntryRepository(session)
        self.clock = clock

    # ------------------------------------------------------------------
    # State evaluation
    # ------------------------------------------------------------------

    def effective_status(
        self, investment: FixedTermInvestment, now: datetime | None = None
    ) -> InvestmentStatus:
        """
        Status as of now, including maturity not yet persisted.

        Args:
            investment: Investment
            now: Evaluation time, defaults to the clock

        Returns:
            InvestmentStatus
        """
        status = InvestmentStatus(investment.status)
        if status != InvestmentStatus.ACTIVE:
            return status
        now = now or self.clock()
        if ensure_utc(now) >= ensure_utc(investment.matures_at):
            return InvestmentStatus.MATURED
        return status

    def view(
        self, investment: FixedTermInvestment, now: datetime | None = None
    ) -> InvestmentView:
        """Build the live view of an investment."""
        now = now or self.clock()
        currency = settings.default_currency
        return InvestmentView(
            investment_id=investment.id,
            plan_id=investment.plan_id,
            principal=investment.principal,
            monthly_rate=investment.monthly_rate,
            duration_days=investment.duration_days,
            status=self.effective_status(investment, now).value,
            started_at=ensure_utc(investment.started_at),
            matures_at=ensure_utc(investment.matures_at),
            accrued_profit=ProfitCalculator.accrued_profit(
                investment.principal,
                investment.monthly_rate,
                investment.duration_days,
                investment.started_at,
                now,
                currency,
            ),
            expected_profit=ProfitCalculator.full_term_profit(
                investment.principal,
                investment.monthly_rate,
                investment.duration_days,
                currency,
            ),
            progress_percent=ProfitCalculator.progress_percent(
                investment.started_at, now, investment.duration_days
            ),
            payout_entry_id=investment.payout_entry_id,
        )

    async def investments_of(self, account_id: int) -> list[InvestmentView]:
        """Get live views of an account's investments, newest first."""
        now = self.clock()
        investments = await self.investment_repo.find_by_account(account_id)
        return [self.view(investment, now) for investment in investments]

    async def get_view(self, investment_id: int) -> InvestmentView:
        """Get the live view of one investment."""
        investment = await self._get(investment_id)
        return self.view(investment)

    async def _get(self, investment_id: int) -> FixedTermInvestment:
        investment = await self.investment_repo.get_by_id(investment_id)
        if investment is None:
            raise InvestmentNotFound(investment_id)
        return investment

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def open_investment(
        self,
        account_id: int,
        plan: Plan,
        principal: Decimal,
        funding_entry: LedgerEntry,
    ) -> FixedTermInvestment:
        """
        Create an investment for a plan purchase.

        Must run inside the purchaser's account scope so that the debit
        and the investment commit together. The record starts pending
        and is activated immediately when the funding entry is completed.

        Args:
            account_id: Investor
            plan: Fixed-term plan
            principal: Purchase amount
            funding_entry: plan_purchase entry

        Returns:
            Created investment
        """
        investment = FixedTermInvestment(
            account_id=account_id,
            plan_id=plan.id,
            principal=principal,
            monthly_rate=plan.monthly_rate,
            duration_days=plan.duration_days,
            status=InvestmentStatus.PENDING.value,
            funding_entry_id=funding_entry.id,
        )
        self.session.add(investment)
        await self.session.flush()

        if funding_entry.status == EntryStatus.COMPLETED:
            self._activate(investment)
            await self.session.flush()

        self.logger.info(
            "Investment opened",
            extra={
                "investment_id": investment.id,
                "account_id": account_id,
                "plan_id": plan.id,
                "principal": str(principal),
                "status": investment.status,
                "matures_at": str(investment.matures_at),
            },
        )
        return investment

    def _activate(self, investment: FixedTermInvestment) -> None:
        """pending -> active."""
        if investment.status != InvestmentStatus.PENDING:
            raise InvalidStateTransition(
                f"Investment {investment.id} is {investment.status}, not pending"
            )
        started_at = self.clock()
        investment.status = InvestmentStatus.ACTIVE.value
        investment.started_at = started_at
        investment.matures_at = started_at + timedelta(
            days=investment.duration_days
        )

    async def request_payout(self, investment_id: int) -> LedgerEntry:
        """
        Pay out a matured investment and close it.

        Credits principal plus full-term profit as investment_payout,
        sourced from the funding entry.

        Raises:
            InvalidStateTransition: If the investment is not matured
        """
        investment = await self._get(investment_id)
        account_id = investment.account_id
        failure: LedgerEngineError | None = None
        payout: LedgerEntry | None = None

        async with self.wallet.account_scope(account_id):
            investment = await self.investment_repo.get_for_update(investment_id)
            status = self.effective_status(investment)

            if status != InvestmentStatus.MATURED:
                failure = InvalidStateTransition(
                    f"Investment {investment_id} is {status}, payout "
                    f"requires matured"
                )
            else:
                amount = investment.principal + ProfitCalculator.full_term_profit(
                    investment.principal,
                    investment.monthly_rate,
                    investment.duration_days,
                    settings.default_currency,
                )
                try:
                    payout = await self.wallet.credit(
                        account_id,
                        amount,
                        EntryKind.INVESTMENT_PAYOUT,
                        source_entry_id=investment.funding_entry_id,
                        idempotency_key=f"investment:{investment_id}:payout",
                        extra={"investment_id": investment_id},
                    )
                except DuplicateEntry as e:
                    payout = e.existing

                investment.status = InvestmentStatus.CLOSED.value
                investment.payout_entry_id = payout.id
                investment.closed_at = self.clock()
                await self.session.flush()

        if failure is not None:
            raise failure

        self.logger.info(
            "Investment paid out",
            extra={
                "investment_id": investment_id,
                "account_id": account_id,
                "amount": str(payout.amount),
                "payout_entry_id": payout.id,
            },
        )
        await self.events.emit(
            EventType.INVESTMENT_CLOSED,
            account_id,
            investment_id=investment_id,
            amount=str(payout.amount),
        )
        return payout

    async def mark_matured(self, investment_id: int) -> bool:
        """
        Persist active -> matured if the term has elapsed.

        Returns:
            True if the status changed
        """
        investment = await self._get(investment_id)
        account_id = investment.account_id
        changed = False

        async with self.wallet.account_scope(account_id):
            investment = await self.investment_repo.get_for_update(investment_id)
            if (
                investment.status == InvestmentStatus.ACTIVE
                and self.effective_status(investment) == InvestmentStatus.MATURED
            ):
                investment.status = InvestmentStatus.MATURED.value
                await self.session.flush()
                changed = True

        if changed:
            await self.events.emit(
                EventType.INVESTMENT_MATURED,
                account_id,
                investment_id=investment_id,
            )
        return changed

    @log_operation
    async def sweep_matured(self, auto_payout: bool | None = None) -> SweepResult:
        """
        Persist maturity of due investments and optionally pay them out.

        Args:
            auto_payout: Override settings.auto_payout_on_maturity

        Returns:
            SweepResult
        """
        if auto_payout is None:
            auto_payout = settings.auto_payout_on_maturity

        result = SweepResult()
        due = await self.investment_repo.find_due(
            self.clock(), include_matured=auto_payout
        )
        due_ids = [investment.id for investment in due]

        for investment_id in due_ids:
            try:
                if await self.mark_matured(investment_id):
                    result.matured.append(investment_id)
                if auto_payout:
                    await self.request_payout(investment_id)
                    result.paid_out.append(investment_id)
            except LedgerEngineError as e:
                # Frozen accounts and similar are left for the next sweep
                self.logger.error(
                    f"Maturity sweep skipped investment {investment_id}: {e}",
                    extra={"investment_id": investment_id},
                )
                result.failed.append(investment_id)

        return result
