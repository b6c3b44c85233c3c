"""
Fixed-term investment repository.
"""

from datetime import datetime

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_engine.models.enums import InvestmentStatus
from ledger_engine.models.investment import FixedTermInvestment
from ledger_engine.repositories.base import BaseRepository


class InvestmentRepository(BaseRepository[FixedTermInvestment]):
    """Fixed-term investment repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize investment repository."""
        super().__init__(FixedTermInvestment, session)

    async def find_by_account(
        self, account_id: int
    ) -> list[FixedTermInvestment]:
        """Get all investments of an account, newest first."""
        stmt = (
            select(FixedTermInvestment)
            .where(FixedTermInvestment.account_id == account_id)
            .order_by(FixedTermInvestment.id.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_due(
        self, now: datetime, include_matured: bool = False, limit: int = 500
    ) -> list[FixedTermInvestment]:
        """
        Get active investments whose term has elapsed.

        With include_matured, already matured (unpaid) ones are returned
        too so that auto payout can pick them up.

        Args:
            now: Current time
            include_matured: Also return matured investments
            limit: Batch size

        Returns:
            List of due investments, oldest maturity first
        """
        condition = (
            (FixedTermInvestment.status == InvestmentStatus.ACTIVE.value)
            & (FixedTermInvestment.matures_at <= now)
        )
        if include_matured:
            condition = or_(
                condition,
                FixedTermInvestment.status == InvestmentStatus.MATURED.value,
            )

        stmt = (
            select(FixedTermInvestment)
            .where(condition)
            .order_by(FixedTermInvestment.matures_at, FixedTermInvestment.id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
