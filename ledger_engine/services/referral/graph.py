"""
Referral graph.

Parent-pointer tree of accounts. Edges are written once at registration
and never changed.
"""

from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy import func, literal, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from ledger_engine.config.business_constants import (
    NETWORK_TREE_DEPTH,
    REFERRAL_DEPTH,
)
from ledger_engine.models.account import Account
from ledger_engine.repositories.account_repository import AccountRepository
from ledger_engine.utils.datetime_utils import utc_now
from ledger_engine.utils.exceptions import AccountNotFound, InvalidPlacement

# Upper bound for full-chain walks (cycle checks); far beyond any real tree
MAX_CHAIN_DEPTH = 10_000

# Key of the PostgreSQL advisory lock held while an edge is written
PLACEMENT_LOCK_KEY = 0x4C45_4447


@dataclass
class NetworkNode:
    """One account in a downline view."""

    account_id: int
    username: str
    referrer_id: int | None
    level: int
    status: str
    children: list["NetworkNode"] = field(default_factory=list)


@dataclass
class NetworkView:
    """Downline tree with per-level counts."""

    root_id: int
    nodes: list[NetworkNode]
    level_counts: dict[int, int]

    @property
    def total(self) -> int:
        """Total accounts in the view."""
        return sum(self.level_counts.values())


class ReferralGraph:
    """Reads and writes the referral tree."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize referral graph."""
        self.session = session
        self.account_repo = AccountRepository(session)

    async def placements(
        self, account_id: int, depth: int = REFERRAL_DEPTH
    ) -> list[int]:
        """
        Get ancestor IDs, nearest first.

        Walks at most depth parent pointers and stops at a root or on
        a repeated node.

        Args:
            account_id: Starting account
            depth: Maximum number of ancestors

        Returns:
            Ancestor IDs; index 0 is the direct referrer
        """
        ancestors: list[int] = []
        visited = {account_id}
        current = account_id

        for _ in range(depth):
            parent = await self.account_repo.get_referrer_id(current)
            if parent is None:
                break
            if parent in visited:
                logger.error(
                    "Cycle detected in referral chain",
                    extra={"account_id": account_id, "repeated": parent},
                )
                break
            ancestors.append(parent)
            visited.add(parent)
            current = parent

        return ancestors

    async def is_ancestor(self, candidate_id: int, account_id: int) -> bool:
        """
        Check if candidate_id appears anywhere above account_id.

        Uses a recursive CTE so the whole chain is checked in one query.
        The account itself counts as its own ancestor.

        Args:
            candidate_id: Possible ancestor
            account_id: Where to start walking up

        Returns:
            True if candidate_id is account_id or one of its ancestors
        """
        chain = (
            select(
                Account.id.label("id"),
                Account.referrer_id.label("referrer_id"),
                literal(0).label("depth"),
            )
            .where(Account.id == account_id)
            .cte("chain", recursive=True)
        )
        parent = aliased(Account)
        chain = chain.union_all(
            select(
                parent.id,
                parent.referrer_id,
                chain.c.depth + 1,
            ).where(
                parent.id == chain.c.referrer_id,
                chain.c.depth < MAX_CHAIN_DEPTH,
            )
        )
        stmt = select(chain.c.id).where(chain.c.id == candidate_id).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def place(self, new_account_id: int, referrer_id: int) -> Account:
        """
        Write the referrer edge of a new account.

        The caller commits.

        Args:
            new_account_id: Account being placed
            referrer_id: Account that referred it

        Returns:
            The placed account

        Raises:
            InvalidPlacement: Unknown referrer, self placement, account
                already placed, or the edge would close a cycle
            AccountNotFound: If the new account does not exist
        """
        if new_account_id == referrer_id:
            raise InvalidPlacement("An account cannot refer itself")

        await self.lock_placements()

        referrer = await self.account_repo.get_by_id(referrer_id)
        if referrer is None:
            raise InvalidPlacement(f"Referrer {referrer_id} does not exist")

        account = await self.account_repo.get_for_update(new_account_id)
        if account is None:
            raise AccountNotFound(new_account_id)
        if account.referrer_id is not None:
            raise InvalidPlacement(
                f"Account {new_account_id} is already placed under "
                f"{account.referrer_id}"
            )

        if await self.is_ancestor(new_account_id, referrer_id):
            raise InvalidPlacement(
                f"Placing {new_account_id} under {referrer_id} would create a cycle"
            )

        account.referrer_id = referrer_id
        account.placed_at = utc_now()
        await self.session.flush()

        logger.info(
            "Referral edge created",
            extra={"account_id": new_account_id, "referrer_id": referrer_id},
        )
        return account

    async def lock_placements(self) -> None:
        """
        Serialise edge writes until the current transaction ends.

        Placements under disjoint referrers can still close a cycle
        together, so every placement takes the same PostgreSQL
        transaction-scoped advisory lock. Other dialects are a no-op.
        """
        if self.session.get_bind().dialect.name != "postgresql":
            return
        await self.session.execute(
            select(func.pg_advisory_xact_lock(PLACEMENT_LOCK_KEY))
        )

    async def direct_referrals(self, account_id: int) -> list[Account]:
        """Get accounts placed directly under account_id."""
        return await self.account_repo.find_direct_referrals(account_id)

    async def downline(
        self, account_id: int, max_depth: int = NETWORK_TREE_DEPTH
    ) -> NetworkView:
        """
        Build the downline tree, one query per level.

        Args:
            account_id: Root of the view
            max_depth: Number of levels to include

        Returns:
            NetworkView with nested nodes and per-level counts
        """
        if await self.account_repo.get_by_id(account_id) is None:
            raise AccountNotFound(account_id)

        roots: list[NetworkNode] = []
        level_counts = {level: 0 for level in range(1, max_depth + 1)}
        by_id: dict[int, NetworkNode] = {}
        visited = {account_id}
        frontier = [account_id]

        for level in range(1, max_depth + 1):
            children = await self.account_repo.find_children_of(frontier)
            frontier = []
            for child in children:
                if child.id in visited:
                    continue
                visited.add(child.id)
                node = NetworkNode(
                    account_id=child.id,
                    username=child.username,
                    referrer_id=child.referrer_id,
                    level=level,
                    status=child.status,
                )
                by_id[child.id] = node
                if level == 1:
                    roots.append(node)
                else:
                    by_id[child.referrer_id].children.append(node)
                level_counts[level] += 1
                frontier.append(child.id)
            if not frontier:
                break

        return NetworkView(root_id=account_id, nodes=roots, level_counts=level_counts)

    async def level_counts(
        self, account_id: int, max_depth: int = NETWORK_TREE_DEPTH
    ) -> dict[int, int]:
        """Get the number of referrals on each level below account_id."""
        view = await self.downline(account_id, max_depth)
        return view.level_counts
