"""
Matrix board service.

Position lifecycle per board and cycle:

    filling -> completed -> re_entered, then a new filling position
    at cycle + 1

A position fills when direct referrals buy the same board. Completion
credits the board income, debits the re-entry amount and opens the next
cycle in one transaction under the member's account lock.
"""

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from ledger_engine.config.settings import settings
from ledger_engine.models.enums import (
    AccountStatus,
    EntryKind,
    EntryStatus,
    MatrixPositionStatus,
    PlanFamily,
)
from ledger_engine.models.ledger_entry import LedgerEntry
from ledger_engine.models.matrix_position import (
    MatrixPosition,
    MatrixQualification,
)
from ledger_engine.models.plan import Plan
from ledger_engine.repositories.account_repository import AccountRepository
from ledger_engine.repositories.ledger_entry_repository import (
    LedgerEntryRepository,
)
from ledger_engine.repositories.matrix_repository import (
    MatrixPositionRepository,
    MatrixQualificationRepository,
)
from ledger_engine.repositories.plan_repository import PlanRepository
from ledger_engine.services.base_service import BaseService, log_operation
from ledger_engine.services.events import EventBus, EventType
from ledger_engine.services.wallet.wallet_service import WalletService
from ledger_engine.utils.datetime_utils import utc_now
from ledger_engine.utils.exceptions import (
    AlreadyOnBoard,
    EntryNotFound,
    LedgerEngineError,
    PlanConfigurationError,
    PositionNotFound,
)


@dataclass
class PositionView:
    """Live view of a board position."""

    position_id: int
    plan_id: int
    board_name: str
    cycle: int
    status: str
    qualified_count: int
    required_referrals: int
    total_income: Decimal
    reentry_amount: Decimal
    net_payout: Decimal
    reward_gift: str | None

    @property
    def progress_percent(self) -> float:
        """Share of required referrals reached, 0-100."""
        if self.required_referrals <= 0:
            return 100.0
        return min(100.0, self.qualified_count / self.required_referrals * 100)

    @property
    def remaining(self) -> int:
        """Referrals still needed."""
        return max(0, self.required_referrals - self.qualified_count)


@dataclass
class CompletionResult:
    """Ledger effects of one board completion."""

    position_id: int
    account_id: int
    cycle: int
    payout_entry_id: int
    reentry_entry_id: int
    next_position_id: int
    net_amount: Decimal


def validate_matrix_plan(plan: Plan) -> None:
    """
    Check a board's parameters.

    Raises:
        PlanConfigurationError: If the plan is not a consistent board
    """
    if plan.family != PlanFamily.MATRIX:
        raise PlanConfigurationError(f"Plan {plan.name!r} is not a matrix board")
    if plan.required_referrals < 1:
        raise PlanConfigurationError(
            f"Board {plan.name!r} needs at least one required referral"
        )
    if plan.total_income <= 0:
        raise PlanConfigurationError(
            f"Board {plan.name!r} must have a positive total income"
        )
    if plan.reentry_amount < 0 or plan.reentry_amount > plan.total_income:
        raise PlanConfigurationError(
            f"Board {plan.name!r} re-entry amount must be within total income"
        )
    expected = plan.total_income - plan.reentry_amount
    if plan.total_income_after_reentry != expected:
        raise PlanConfigurationError(
            f"Board {plan.name!r}: total income after re-entry is "
            f"{plan.total_income_after_reentry}, expected {expected}"
        )


class MatrixBoardService(BaseService):
    """Drives matrix board positions."""

    def __init__(
        self,
        session: AsyncSession,
        wallet: WalletService | None = None,
        events: EventBus | None = None,
        reentry_funding: str | None = None,
    ) -> None:
        """
        Initialize matrix board service.

        Args:
            session: Async database session
            wallet: Wallet service sharing the session
            events: Event bus
            reentry_funding: 'payout' or 'balance', defaults to settings
        """
        super().__init__(session, events)
        self.wallet = wallet or WalletService(session, events=self.events)
        self.position_repo = MatrixPositionRepository(session)
        self.qualification_repo = MatrixQualificationRepository(session)
        self.plan_repo = PlanRepository(session)
        self.account_repo = AccountRepository(session)
        self.entry_repo = LedgerEntryRepository(session)
        self.reentry_funding = reentry_funding or settings.matrix_reentry_funding

    # ------------------------------------------------------------------
    # Joining
    # ------------------------------------------------------------------

    async def join_board(
        self, account_id: int, plan: Plan, purchase_entry: LedgerEntry
    ) -> MatrixPosition:
        """
        Open cycle 1 on a board.

        Must run inside the purchaser's account scope so that the
        purchase debit and the position commit together.

        Raises:
            AlreadyOnBoard: If the account is already filling this board
        """
        existing = await self.position_repo.get_filling(account_id, plan.id)
        if existing is not None:
            raise AlreadyOnBoard(
                f"Account {account_id} already has an open position on "
                f"board {plan.name!r}"
            )

        history = await self.position_repo.find_by_account(account_id, plan.id)
        cycle = max((p.cycle for p in history), default=0) + 1

        position = MatrixPosition(
            account_id=account_id,
            plan_id=plan.id,
            cycle=cycle,
            qualified_count=0,
            status=MatrixPositionStatus.FILLING.value,
            source_entry_id=purchase_entry.id,
        )
        self.session.add(position)
        await self.session.flush()

        self.logger.info(
            "Joined matrix board",
            extra={
                "position_id": position.id,
                "account_id": account_id,
                "plan_id": plan.id,
                "cycle": cycle,
            },
        )
        return position

    async def is_filling(self, account_id: int, plan_id: int) -> bool:
        """Check if the account has an open position on a board."""
        return await self.position_repo.get_filling(account_id, plan_id) is not None

    # ------------------------------------------------------------------
    # Qualification
    # ------------------------------------------------------------------

    async def record_qualification(self, purchase_entry_id: int) -> int | None:
        """
        Count a completed board purchase toward the direct sponsor.

        Re-entries never count. Both sponsor and buyer must be active,
        and a sponsor without an open position on the same board gets
        nothing. Recording the same purchase twice
        has no effect.

        Args:
            purchase_entry_id: plan_purchase entry of the referral

        Returns:
            Sponsor position ID that was credited, or None
        """
        entry = await self.entry_repo.get_by_id(purchase_entry_id)
        if entry is None:
            raise EntryNotFound(purchase_entry_id)
        if (
            entry.kind != EntryKind.PLAN_PURCHASE
            or entry.status != EntryStatus.COMPLETED
        ):
            return None

        plan_id = (entry.extra or {}).get("plan_id")
        referee_id = entry.account_id
        plan = await self.plan_repo.get_by_id(plan_id) if plan_id else None
        if plan is None or plan.family != PlanFamily.MATRIX:
            return None
        required = plan.required_referrals

        sponsor_id = await self.account_repo.get_referrer_id(referee_id)
        if sponsor_id is None:
            return None

        statuses = await self.account_repo.get_statuses([sponsor_id, referee_id])
        if (
            statuses.get(sponsor_id) != AccountStatus.ACTIVE
            or statuses.get(referee_id) != AccountStatus.ACTIVE
        ):
            self.logger.debug(
                "Sponsor or buyer inactive, qualification not counted",
                extra={"sponsor_id": sponsor_id, "referee_id": referee_id},
            )
            return None

        position_id: int | None = None
        count = 0
        async with self.wallet.account_scope(sponsor_id):
            position = await self.position_repo.get_filling(
                sponsor_id, plan_id, for_update=True
            )
            if position is not None and not await self.qualification_repo.is_counted(
                position.id, referee_id
            ):
                self.session.add(
                    MatrixQualification(
                        position_id=position.id,
                        qualifying_account_id=referee_id,
                        purchase_entry_id=purchase_entry_id,
                    )
                )
                position.qualified_count += 1
                await self.session.flush()
                position_id = position.id
                count = position.qualified_count

        if position_id is None:
            return None

        self.logger.info(
            "Matrix qualification recorded",
            extra={
                "position_id": position_id,
                "sponsor_id": sponsor_id,
                "referee_id": referee_id,
                "qualified_count": count,
                "required_referrals": required,
            },
        )

        if count >= required:
            await self.complete_if_due(position_id)
        return position_id

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    async def complete_if_due(self, position_id: int) -> CompletionResult | None:
        """
        Complete a filled position: payout, re-entry, next cycle.

        All three effects commit together or not at all. Ledger keys are
        tied to the position, so running this twice pays once.

        Args:
            position_id: Position to check

        Returns:
            CompletionResult, or None if the position is not due

        Raises:
            InsufficientFunds: 'balance' funding without enough balance
        """
        position = await self.position_repo.get_by_id(position_id)
        if position is None:
            raise PositionNotFound(position_id)
        account_id = position.account_id

        plan = await self.plan_repo.get_by_id(position.plan_id)
        validate_matrix_plan(plan)
        plan_id = plan.id
        required = plan.required_referrals
        total_income = plan.total_income
        reentry_amount = plan.reentry_amount
        reward_gift = plan.reward_gift

        result: CompletionResult | None = None
        async with self.wallet.account_scope(account_id):
            position = await self.position_repo.get_for_update(position_id)
            if (
                position.status == MatrixPositionStatus.FILLING
                and position.qualified_count >= required
            ):
                result = await self._complete(
                    position, plan_id, total_income, reentry_amount
                )

        if result is None:
            return None

        self.logger.info(
            "Matrix board completed",
            extra={
                "position_id": position_id,
                "account_id": account_id,
                "plan_id": plan_id,
                "cycle": result.cycle,
                "payout": str(total_income),
                "reentry": str(reentry_amount),
                "next_position_id": result.next_position_id,
            },
        )
        await self.events.emit(
            EventType.BOARD_COMPLETED,
            account_id,
            position_id=position_id,
            plan_id=plan_id,
            cycle=result.cycle,
            payout=str(total_income),
            reentry=str(reentry_amount),
            net=str(result.net_amount),
            reward_gift=reward_gift,
        )
        return result

    async def _complete(
        self,
        position: MatrixPosition,
        plan_id: int,
        total_income: Decimal,
        reentry_amount: Decimal,
    ) -> CompletionResult:
        """Ledger writes of a completion, inside the owner's scope."""
        account_id = position.account_id
        source_entry_id = position.source_entry_id

        async def pay() -> LedgerEntry:
            return await self.wallet.credit(
                account_id,
                total_income,
                EntryKind.MATRIX_PAYOUT,
                source_entry_id=source_entry_id,
                idempotency_key=f"matrix:{position.id}:payout",
                extra={"position_id": position.id, "cycle": position.cycle},
            )

        async def reenter() -> LedgerEntry:
            return await self.wallet.debit(
                account_id,
                reentry_amount,
                EntryKind.MATRIX_REENTRY_DEBIT,
                source_entry_id=source_entry_id,
                idempotency_key=f"matrix:{position.id}:reentry",
                extra={"position_id": position.id, "cycle": position.cycle},
            )

        if self.reentry_funding == "balance":
            reentry = await reenter()
            payout = await pay()
        else:
            payout = await pay()
            reentry = await reenter()

        now = utc_now()
        position.status = MatrixPositionStatus.COMPLETED.value
        position.completed_at = now
        position.payout_entry_id = payout.id
        position.reentry_entry_id = reentry.id
        position.status = MatrixPositionStatus.RE_ENTERED.value

        next_position = MatrixPosition(
            account_id=account_id,
            plan_id=plan_id,
            cycle=position.cycle + 1,
            qualified_count=0,
            status=MatrixPositionStatus.FILLING.value,
            source_entry_id=reentry.id,
        )
        self.session.add(next_position)
        await self.session.flush()

        return CompletionResult(
            position_id=position.id,
            account_id=account_id,
            cycle=position.cycle,
            payout_entry_id=payout.id,
            reentry_entry_id=reentry.id,
            next_position_id=next_position.id,
            net_amount=payout.amount + reentry.amount,
        )

    @log_operation
    async def retry_due_completions(self, limit: int = 200) -> list[int]:
        """
        Re-run completion for every filled position still open.

        Covers crashes between counting and completing and 'balance'
        funding that failed earlier.

        Returns:
            IDs of positions completed by this run
        """
        completed: list[int] = []
        for position_id in await self.position_repo.find_due_completion(limit):
            try:
                if await self.complete_if_due(position_id) is not None:
                    completed.append(position_id)
            except LedgerEngineError as e:
                self.logger.warning(
                    f"Matrix completion deferred for position {position_id}: {e}",
                    extra={"position_id": position_id},
                )
        return completed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def positions_of(
        self, account_id: int, plan_id: int | None = None
    ) -> list[PositionView]:
        """
        Get live views of an account's positions, history included.

        Args:
            account_id: Position owner
            plan_id: Restrict to one board

        Returns:
            Views ordered by board then cycle
        """
        positions = await self.position_repo.find_by_account(account_id, plan_id)
        plans: dict[int, Plan] = {}
        views = []
        for position in positions:
            plan = plans.get(position.plan_id)
            if plan is None:
                plan = await self.plan_repo.get_by_id(position.plan_id)
                plans[position.plan_id] = plan
            views.append(
                PositionView(
                    position_id=position.id,
                    plan_id=plan.id,
                    board_name=plan.name,
                    cycle=position.cycle,
                    status=position.status,
                    qualified_count=position.qualified_count,
                    required_referrals=plan.required_referrals,
                    total_income=plan.total_income,
                    reentry_amount=plan.reentry_amount,
                    net_payout=plan.total_income_after_reentry,
                    reward_gift=plan.reward_gift,
                )
            )
        return views
