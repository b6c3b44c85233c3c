"""
Integration tests for the referral tree.

Tests cover:
- Placement by referral code
- Rejection of self referral, re-parenting, unknown codes and cycles
- Ancestor walk bounded by depth
- Downline view with per-level counts
- Placement lock on PostgreSQL
"""

from types import SimpleNamespace

import pytest
from sqlalchemy.dialects import postgresql

from ledger_engine.models.enums import AccountStatus
from ledger_engine.services.referral.graph import PLACEMENT_LOCK_KEY, ReferralGraph
from ledger_engine.utils.exceptions import InvalidPlacement, LedgerEngineError


async def build_chain(member, length: int) -> list[int]:
    """Create root -> ... -> leaf and return IDs root first."""
    ids: list[int] = []
    sponsor = None
    for i in range(length):
        sponsor = await member(f"user{i}", sponsor)
        ids.append(sponsor)
    return ids


class TestPlacement:
    """Test writing referrer edges."""

    @pytest.mark.asyncio
    async def test_create_with_referrer(self, ledger, member):
        sponsor_id = await member("alice")
        account_id = await member("bob", sponsor_id)

        account = await ledger.accounts.get(account_id)

        assert account.referrer_id == sponsor_id
        assert account.placed_at is not None
        assert account.status == AccountStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_referral_code_lookup_is_case_insensitive(self, ledger, member):
        sponsor_id = await member("alice")
        sponsor = await ledger.accounts.get(sponsor_id)

        account = await ledger.create_account("bob", sponsor.referral_code.lower())

        assert account.referrer_id == sponsor_id

    @pytest.mark.asyncio
    async def test_register_existing_root(self, ledger, member):
        sponsor_id = await member("alice")
        account_id = await member("bob")
        sponsor = await ledger.accounts.get(sponsor_id)

        placed = await ledger.register_account(account_id, sponsor.referral_code)

        assert placed.referrer_id == sponsor_id

    @pytest.mark.asyncio
    async def test_unknown_code(self, ledger):
        with pytest.raises(InvalidPlacement):
            await ledger.create_account("bob", "NOSUCHCODE")

    @pytest.mark.asyncio
    async def test_duplicate_username(self, ledger, member):
        await member("alice")

        with pytest.raises(LedgerEngineError):
            await ledger.create_account("alice")

    @pytest.mark.asyncio
    async def test_self_referral(self, ledger, member):
        account_id = await member("alice")
        code = (await ledger.accounts.get(account_id)).referral_code

        with pytest.raises(InvalidPlacement):
            await ledger.register_account(account_id, code)

    @pytest.mark.asyncio
    async def test_cannot_reparent(self, ledger, member):
        first_id = await member("alice")
        second_id = await member("carol")
        account_id = await member("bob", first_id)
        code = (await ledger.accounts.get(second_id)).referral_code

        with pytest.raises(InvalidPlacement):
            await ledger.register_account(account_id, code)

        account = await ledger.accounts.get(account_id)
        assert account.referrer_id == first_id

    @pytest.mark.asyncio
    async def test_cycle_rejected(self, ledger, member):
        """A root cannot be placed under its own descendant."""
        root_id, _, leaf_id = await build_chain(member, 3)
        leaf_code = (await ledger.accounts.get(leaf_id)).referral_code

        with pytest.raises(InvalidPlacement):
            await ledger.register_account(root_id, leaf_code)

        root = await ledger.accounts.get(root_id)
        assert root.referrer_id is None


class TestAncestors:
    """Test walking up the tree."""

    @pytest.mark.asyncio
    async def test_nearest_first(self, ledger, member):
        ids = await build_chain(member, 4)

        ancestors = await ledger.graph.placements(ids[-1])

        assert ancestors == [ids[2], ids[1], ids[0]]

    @pytest.mark.asyncio
    async def test_depth_bounded(self, ledger, member):
        ids = await build_chain(member, 8)

        ancestors = await ledger.graph.placements(ids[-1], depth=5)

        assert len(ancestors) == 5
        assert ancestors[0] == ids[-2]
        assert ancestors[-1] == ids[2]

    @pytest.mark.asyncio
    async def test_root_has_no_ancestors(self, ledger, member):
        root_id = await member("alice")
        assert await ledger.graph.placements(root_id) == []

    @pytest.mark.asyncio
    async def test_is_ancestor(self, ledger, member):
        ids = await build_chain(member, 3)

        assert await ledger.graph.is_ancestor(ids[0], ids[2])
        assert not await ledger.graph.is_ancestor(ids[2], ids[0])


class TestNetwork:
    """Test the downline view."""

    @pytest.mark.asyncio
    async def test_level_counts(self, ledger, member):
        root_id = await member("root")
        left_id = await member("left", root_id)
        right_id = await member("right", root_id)
        await member("left-a", left_id)
        await member("left-b", left_id)
        await member("right-a", right_id)

        view = await ledger.network_of(root_id)

        assert view.level_counts[1] == 2
        assert view.level_counts[2] == 3
        assert view.level_counts[3] == 0
        assert view.total == 5
        children = {node.account_id: node for node in view.nodes}
        assert len(children[left_id].children) == 2

    @pytest.mark.asyncio
    async def test_depth_limited(self, ledger, member):
        ids = await build_chain(member, 8)

        counts = await ledger.graph.level_counts(ids[0], max_depth=5)

        assert sum(counts.values()) == 5


class _RecordingSession:
    """Stands in for an AsyncSession bound to a given dialect."""

    def __init__(self, dialect_name: str):
        self.statements = []
        self._bind = SimpleNamespace(dialect=SimpleNamespace(name=dialect_name))

    def get_bind(self):
        return self._bind

    async def execute(self, stmt):
        self.statements.append(stmt)


class TestPlacementLock:
    """Test serialisation of edge writes."""

    @pytest.mark.asyncio
    async def test_postgresql_takes_advisory_lock(self):
        session = _RecordingSession("postgresql")

        await ReferralGraph(session).lock_placements()

        [stmt] = session.statements
        compiled = stmt.compile(
            dialect=postgresql.dialect(), compile_kwargs={"literal_binds": True}
        )
        assert "pg_advisory_xact_lock" in str(compiled)
        assert str(PLACEMENT_LOCK_KEY) in str(compiled)

    @pytest.mark.asyncio
    async def test_sqlite_does_not_lock(self):
        session = _RecordingSession("sqlite")

        await ReferralGraph(session).lock_placements()

        assert session.statements == []

    @pytest.mark.asyncio
    async def test_placement_still_succeeds(self, ledger, member):
        root_id = await member("root")
        child_id = await member("child", root_id)

        assert await ledger.graph.placements(child_id) == [root_id]
