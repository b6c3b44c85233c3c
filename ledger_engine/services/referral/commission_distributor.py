"""
Commission distributor.

Pays levelled commissions to the ancestors of the account that caused
a qualifying ledger event. Each level is its own idempotent credit, so
re-running a distribution only fills the levels that are missing.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from ledger_engine.config.settings import settings
from ledger_engine.models.enums import (
    COMMISSIONABLE_KINDS,
    AccountStatus,
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
from ledger_engine.services.referral.config import get_schedule
from ledger_engine.services.referral.graph import ReferralGraph
from ledger_engine.services.wallet.wallet_service import WalletService
from ledger_engine.utils.exceptions import (
    AccountFrozen,
    DuplicateEntry,
    EntryNotFound,
)
from ledger_engine.utils.money import round_money


@dataclass
class CommissionNotification:
    """Data for notifying an ancestor about a commission."""

    account_id: int
    amount: Decimal
    level: int
    source_entry_id: int
    source_account_id: int


@dataclass
class DistributionResult:
    """Result of one distribution run."""

    source_entry_id: int
    paid: list[LedgerEntry] = field(default_factory=list)
    already_paid_levels: list[int] = field(default_factory=list)
    skipped_levels: list[int] = field(default_factory=list)
    failed_levels: list[int] = field(default_factory=list)
    notifications: list[CommissionNotification] = field(default_factory=list)

    @property
    def total_paid(self) -> Decimal:
        """Sum paid by this run."""
        return sum((entry.amount for entry in self.paid), Decimal("0"))

    @property
    def complete(self) -> bool:
        """Check if no level is left for a retry."""
        return not self.failed_levels


class CommissionDistributor(BaseService):
    """
    Distributes commissions up the referral chain.

    Level L pays round_half_up(|source amount| * rate[L]) to the ancestor
    at distance L. Inactive ancestors are handled by the configured
    policy: 'skip' leaves their level unpaid, 'compress' renumbers the
    active ancestors among the visited ones.
    """

    def __init__(
        self,
        session: AsyncSession,
        wallet: WalletService | None = None,
        events: EventBus | None = None,
        policy: str | None = None,
    ) -> None:
        """
        Initialize commission distributor.

        Args:
            session: Async database session
            wallet: Wallet service sharing the session
            events: Event bus
            policy: Inactive ancestor policy, defaults to settings
        """
        super().__init__(session, events)
        self.wallet = wallet or WalletService(session, events=self.events)
        self.graph = ReferralGraph(session)
        self.account_repo = AccountRepository(session)
        self.entry_repo = LedgerEntryRepository(session)
        self.policy = policy or settings.inactive_ancestor_policy

    async def distribute(self, source_entry_id: int) -> DistributionResult:
        """
        Pay all missing commission levels for a source entry.

        Non-qualifying entries (wrong kind, not completed) are ignored.

        Args:
            source_entry_id: Completed deposit or plan_purchase entry

        Returns:
            DistributionResult
        """
        source = await self.entry_repo.get_by_id(source_entry_id)
        if source is None:
            raise EntryNotFound(source_entry_id)

        result = DistributionResult(source_entry_id=source_entry_id)

        if (
            source.kind not in COMMISSIONABLE_KINDS
            or source.status != EntryStatus.COMPLETED
        ):
            self.logger.debug(
                "Entry does not trigger commissions",
                extra={
                    "entry_id": source_entry_id,
                    "kind": source.kind,
                    "status": source.status,
                },
            )
            return result

        # Capture plain values before any commit in the loop below
        owner_id = source.account_id
        base_amount = abs(source.amount)
        currency = source.currency
        family = (source.extra or {}).get("plan_family", "deposit")

        schedule = get_schedule(family, settings.referral_depth)
        ancestors = await self.graph.placements(owner_id, schedule.max_depth)
        levels = await self._assign_levels(ancestors, result)

        for level, ancestor_id in levels:
            rate = schedule.rate_for(level)
            if rate is None:
                continue

            amount = round_money(base_amount * rate, currency)
            if amount <= 0:
                result.skipped_levels.append(level)
                continue

            try:
                entry = await self.wallet.credit(
                    ancestor_id,
                    amount,
                    EntryKind.COMMISSION,
                    source_entry_id=source_entry_id,
                    level=level,
                    idempotency_key=f"commission:{source_entry_id}:{level}",
                    currency=currency,
                    extra={"source_account_id": owner_id, "rate": str(rate)},
                )
            except DuplicateEntry:
                result.already_paid_levels.append(level)
                continue
            except AccountFrozen:
                self.logger.error(
                    "Commission level deferred: ancestor ledger frozen",
                    extra={
                        "source_entry_id": source_entry_id,
                        "ancestor_id": ancestor_id,
                        "level": level,
                    },
                )
                result.failed_levels.append(level)
                continue

            result.paid.append(entry)
            result.notifications.append(
                CommissionNotification(
                    account_id=ancestor_id,
                    amount=amount,
                    level=level,
                    source_entry_id=source_entry_id,
                    source_account_id=owner_id,
                )
            )

        self.logger.info(
            "Commissions distributed",
            extra={
                "source_entry_id": source_entry_id,
                "source_account_id": owner_id,
                "family": family,
                "paid_levels": [e.level for e in result.paid],
                "already_paid_levels": result.already_paid_levels,
                "skipped_levels": result.skipped_levels,
                "failed_levels": result.failed_levels,
                "total_paid": str(result.total_paid),
            },
        )

        for notification in result.notifications:
            await self.events.emit(
                EventType.COMMISSION_EARNED,
                notification.account_id,
                amount=str(notification.amount),
                level=notification.level,
                source_entry_id=notification.source_entry_id,
                source_account_id=notification.source_account_id,
            )

        return result

    async def _assign_levels(
        self, ancestors: list[int], result: DistributionResult
    ) -> list[tuple[int, int]]:
        """
        Map ancestors to commission levels.

        Args:
            ancestors: Ancestor IDs, nearest first
            result: Collects levels skipped for inactive ancestors

        Returns:
            (level, ancestor_id) pairs to pay
        """
        statuses = await self.account_repo.get_statuses(ancestors)
        assigned: list[tuple[int, int]] = []

        if self.policy == "compress":
            active = [
                a for a in ancestors if statuses.get(a) == AccountStatus.ACTIVE
            ]
            return list(enumerate(active, start=1))

        for level, ancestor_id in enumerate(ancestors, start=1):
            if statuses.get(ancestor_id) != AccountStatus.ACTIVE:
                result.skipped_levels.append(level)
                continue
            assigned.append((level, ancestor_id))
        return assigned
