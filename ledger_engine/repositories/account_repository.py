"""
Account repository.

Data access for accounts and the referral tree edges they carry.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_engine.models.account import Account
from ledger_engine.repositories.base import BaseRepository


class AccountRepository(BaseRepository[Account]):
    """Account repository with tree-specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize account repository."""
        super().__init__(Account, session)

    async def get_by_username(self, username: str) -> Account | None:
        """Get account by username."""
        return await self.get_by(username=username)

    async def get_by_referral_code(self, code: str) -> Account | None:
        """Get account by referral code."""
        return await self.get_by(referral_code=code)

    async def get_referrer_id(self, account_id: int) -> int | None:
        """
        Get the parent pointer of an account without loading the row.

        Args:
            account_id: Account ID

        Returns:
            Referrer ID or None for roots and unknown accounts
        """
        stmt = select(Account.referrer_id).where(Account.id == account_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_statuses(self, account_ids: list[int]) -> dict[int, str]:
        """
        Get statuses for several accounts in one query.

        Args:
            account_ids: Account IDs

        Returns:
            Mapping of account ID to status
        """
        if not account_ids:
            return {}
        stmt = select(Account.id, Account.status).where(
            Account.id.in_(account_ids)
        )
        result = await self.session.execute(stmt)
        return {row.id: row.status for row in result.all()}

    async def find_direct_referrals(self, account_id: int) -> list[Account]:
        """Get accounts placed directly under account_id."""
        stmt = (
            select(Account)
            .where(Account.referrer_id == account_id)
            .order_by(Account.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_children_of(self, parent_ids: list[int]) -> list[Account]:
        """Get all accounts whose referrer is in parent_ids."""
        if not parent_ids:
            return []
        stmt = (
            select(Account)
            .where(Account.referrer_id.in_(parent_ids))
            .order_by(Account.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_ids_batch(
        self, after_id: int = 0, limit: int = 500
    ) -> list[int]:
        """
        Get account IDs in ascending order for batch jobs.

        Args:
            after_id: Return IDs greater than this
            limit: Batch size

        Returns:
            List of account IDs
        """
        stmt = (
            select(Account.id)
            .where(Account.id > after_id, Account.ledger_frozen.is_(False))
            .order_by(Account.id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_frozen(self) -> int:
        """Count accounts frozen by failed reconciliation."""
        stmt = select(func.count(Account.id)).where(
            Account.ledger_frozen.is_(True)
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0
