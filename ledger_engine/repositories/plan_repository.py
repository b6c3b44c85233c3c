"""
Plan repository.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_engine.models.plan import Plan
from ledger_engine.repositories.base import BaseRepository


class PlanRepository(BaseRepository[Plan]):
    """Plan repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize plan repository."""
        super().__init__(Plan, session)

    async def get_by_name(self, name: str) -> Plan | None:
        """Get plan by name."""
        return await self.get_by(name=name)

    async def find_active(self, family: str | None = None) -> list[Plan]:
        """
        Get purchasable plans, cheapest first.

        Args:
            family: Restrict to one plan family

        Returns:
            List of active plans
        """
        stmt = select(Plan).where(Plan.active.is_(True))
        if family is not None:
            stmt = stmt.where(Plan.family == family)
        stmt = stmt.order_by(Plan.min_deposit, Plan.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
