"""
Ledger entry repository.

Append-only access to ledger entries plus the aggregate queries used
by reconciliation and the retry jobs.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_engine.models.enums import EntryKind, EntryStatus
from ledger_engine.models.ledger_entry import LedgerEntry
from ledger_engine.repositories.base import BaseRepository


class LedgerEntryRepository(BaseRepository[LedgerEntry]):
    """Ledger entry repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize ledger entry repository."""
        super().__init__(LedgerEntry, session)

    async def find_existing(
        self,
        kind: str,
        source_entry_id: int | None = None,
        level: int = 0,
        idempotency_key: str | None = None,
    ) -> LedgerEntry | None:
        """
        Find an entry that would collide with a new one.

        Matches on (source_entry_id, kind, level) when a source is given,
        then on idempotency_key.

        Args:
            kind: Entry kind
            source_entry_id: Causing entry
            level: Ancestor level
            idempotency_key: Caller key

        Returns:
            Existing entry or None
        """
        if source_entry_id is not None:
            stmt = select(LedgerEntry).where(
                LedgerEntry.source_entry_id == source_entry_id,
                LedgerEntry.kind == kind,
                LedgerEntry.level == level,
            )
            result = await self.session.execute(stmt)
            entry = result.scalar_one_or_none()
            if entry is not None:
                return entry

        if idempotency_key is not None:
            return await self.get_by(idempotency_key=idempotency_key)

        return None

    async def sum_completed(self, account_id: int) -> Decimal:
        """
        Sum all completed entries of an account.

        Args:
            account_id: Account ID

        Returns:
            Ledger balance
        """
        stmt = select(func.coalesce(func.sum(LedgerEntry.amount), 0)).where(
            LedgerEntry.account_id == account_id,
            LedgerEntry.status == EntryStatus.COMPLETED.value,
        )
        result = await self.session.execute(stmt)
        return Decimal(str(result.scalar() or 0))

    async def sum_pending_withdrawals(self, account_id: int) -> Decimal:
        """
        Sum of pending withdrawal holds (as a positive number).

        Args:
            account_id: Account ID

        Returns:
            Amount reserved by pending withdrawals
        """
        stmt = select(func.coalesce(func.sum(LedgerEntry.amount), 0)).where(
            LedgerEntry.account_id == account_id,
            LedgerEntry.kind == EntryKind.WITHDRAWAL.value,
            LedgerEntry.status == EntryStatus.PENDING.value,
        )
        result = await self.session.execute(stmt)
        return -Decimal(str(result.scalar() or 0))

    async def find_for_source(
        self, source_entry_id: int, kind: str | None = None
    ) -> list[LedgerEntry]:
        """Get entries caused by source_entry_id, ordered by level."""
        stmt = select(LedgerEntry).where(
            LedgerEntry.source_entry_id == source_entry_id
        )
        if kind is not None:
            stmt = stmt.where(LedgerEntry.kind == kind)
        stmt = stmt.order_by(LedgerEntry.level, LedgerEntry.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_commissionable_since(
        self, since: datetime, after_id: int = 0, limit: int = 500
    ) -> list[LedgerEntry]:
        """
        Get one batch of completed source events created after since.

        Args:
            since: Lower bound of created_at
            after_id: Return only entries with a larger ID
            limit: Max number of results

        Returns:
            Completed deposit and plan_purchase entries, oldest first
        """
        stmt = (
            select(LedgerEntry)
            .where(
                LedgerEntry.kind.in_(
                    [EntryKind.DEPOSIT.value, EntryKind.PLAN_PURCHASE.value]
                ),
                LedgerEntry.status == EntryStatus.COMPLETED.value,
                LedgerEntry.created_at >= since,
                LedgerEntry.id > after_id,
            )
            .order_by(LedgerEntry.id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_account_ledger(
        self, account_id: int, page: int = 1, per_page: int = 50
    ) -> tuple[list[LedgerEntry], int]:
        """Get an account's statement, newest first."""
        return await self.find_paginated(
            page=page,
            per_page=per_page,
            newest_first=True,
            account_id=account_id,
        )
