"""
Matrix board repository.

Positions and the qualifications counted toward them.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_engine.models.enums import MatrixPositionStatus
from ledger_engine.models.matrix_position import (
    MatrixPosition,
    MatrixQualification,
)
from ledger_engine.models.plan import Plan
from ledger_engine.repositories.base import BaseRepository


class MatrixPositionRepository(BaseRepository[MatrixPosition]):
    """Matrix position repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize matrix position repository."""
        super().__init__(MatrixPosition, session)

    async def get_filling(
        self, account_id: int, plan_id: int, for_update: bool = False
    ) -> MatrixPosition | None:
        """
        Get the account's open position on a board.

        Args:
            account_id: Position owner
            plan_id: Board
            for_update: Lock the row

        Returns:
            Filling position or None
        """
        stmt = select(MatrixPosition).where(
            MatrixPosition.account_id == account_id,
            MatrixPosition.plan_id == plan_id,
            MatrixPosition.status == MatrixPositionStatus.FILLING.value,
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(
                populate_existing=True
            )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_account(
        self, account_id: int, plan_id: int | None = None
    ) -> list[MatrixPosition]:
        """Get an account's positions, board then cycle order."""
        stmt = select(MatrixPosition).where(
            MatrixPosition.account_id == account_id
        )
        if plan_id is not None:
            stmt = stmt.where(MatrixPosition.plan_id == plan_id)
        stmt = stmt.order_by(MatrixPosition.plan_id, MatrixPosition.cycle)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_due_completion(self, limit: int = 200) -> list[int]:
        """
        Get IDs of filling positions that reached their threshold.

        Args:
            limit: Batch size

        Returns:
            Position IDs
        """
        stmt = (
            select(MatrixPosition.id)
            .join(Plan, Plan.id == MatrixPosition.plan_id)
            .where(
                MatrixPosition.status == MatrixPositionStatus.FILLING.value,
                MatrixPosition.qualified_count >= Plan.required_referrals,
            )
            .order_by(MatrixPosition.id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class MatrixQualificationRepository(BaseRepository[MatrixQualification]):
    """Matrix qualification repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize matrix qualification repository."""
        super().__init__(MatrixQualification, session)

    async def is_counted(
        self, position_id: int, qualifying_account_id: int
    ) -> bool:
        """Check if a referral already counted toward a position."""
        return await self.exists(
            position_id=position_id,
            qualifying_account_id=qualifying_account_id,
        )
