"""
Integration tests for multi-level commission distribution.

Tests cover:
- Level mapping (direct referrer is level 1)
- Depth limit of five levels
- Exactly-once payment under repeated delivery
- Inactive ancestors (skip and compress policies)
- Frozen ancestors deferred and filled by the retry, across batches
- Non-qualifying entries
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import update

from ledger_engine.models import Account
from ledger_engine.models.enums import AccountStatus, EntryKind
from ledger_engine.services.events import EventType


async def build_chain(member, length: int) -> list[int]:
    """Create root -> ... -> leaf and return IDs root first."""
    ids: list[int] = []
    sponsor = None
    for i in range(length):
        sponsor = await member(f"user{i}", sponsor)
        ids.append(sponsor)
    return ids


class TestDepositCommissions:
    """Test commissions triggered by confirmed deposits."""

    @pytest.mark.asyncio
    async def test_two_levels(self, ledger, member, recorded_events):
        """A -> B -> C: C deposits 100, B earns 10.00 and A earns 5.00."""
        a_id, b_id, c_id = await build_chain(member, 3)

        deposit = await ledger.notify_deposit_confirmed(
            c_id, Decimal("100"), "USDT", "provider-tx-1"
        )

        assert deposit.kind == EntryKind.DEPOSIT
        assert await ledger.balance_of(c_id) == Decimal("100")
        assert await ledger.balance_of(b_id) == Decimal("10.00")
        assert await ledger.balance_of(a_id) == Decimal("5.00")

        commissions = await ledger.wallet.entry_repo.find_for_source(
            deposit.id, EntryKind.COMMISSION.value
        )
        assert [(e.account_id, e.level) for e in commissions] == [
            (b_id, 1),
            (a_id, 2),
        ]
        earned = [e for e in recorded_events if e.type == EventType.COMMISSION_EARNED]
        assert {e.account_id for e in earned} == {a_id, b_id}

    @pytest.mark.asyncio
    async def test_five_level_cap(self, ledger, member):
        """The sixth ancestor earns nothing."""
        ids = await build_chain(member, 7)

        await ledger.notify_deposit_confirmed(ids[-1], Decimal("1000"), "USDT", "tx-7")

        expected = ["100.00", "50.00", "30.00", "20.00", "10.00"]
        for ancestor_id, amount in zip(reversed(ids[:-1]), expected, strict=False):
            assert await ledger.balance_of(ancestor_id) == Decimal(amount)
        assert await ledger.balance_of(ids[0]) == Decimal("0")

    @pytest.mark.asyncio
    async def test_three_ancestors_three_levels(self, ledger, member):
        """A depth-3 chain pays levels 1..3 and nothing at levels 4 and 5."""
        a_id, b_id, c_id, d_id = await build_chain(member, 4)

        deposit = await ledger.notify_deposit_confirmed(
            d_id, Decimal("1000"), "USDT", "tx-depth-3"
        )

        commissions = await ledger.wallet.entry_repo.find_for_source(
            deposit.id, EntryKind.COMMISSION.value
        )
        assert [(e.account_id, e.level, e.amount) for e in commissions] == [
            (c_id, 1, Decimal("100.00")),
            (b_id, 2, Decimal("50.00")),
            (a_id, 3, Decimal("30.00")),
        ]
        assert all(e.level <= 3 for e in commissions)

    @pytest.mark.asyncio
    async def test_root_deposit_pays_nothing(self, ledger, member):
        root_id = await member("alice")

        deposit = await ledger.notify_deposit_confirmed(
            root_id, Decimal("100"), "USDT", "tx-root"
        )

        assert await ledger.wallet.entry_repo.find_for_source(deposit.id) == []

    @pytest.mark.asyncio
    async def test_rounding_per_level(self, ledger, member):
        """3% of 33.33 rounds half-up to 1.00."""
        ids = await build_chain(member, 4)

        await ledger.notify_deposit_confirmed(ids[-1], Decimal("33.33"), "USDT", "tx-r")

        assert await ledger.balance_of(ids[2]) == Decimal("3.33")
        assert await ledger.balance_of(ids[1]) == Decimal("1.67")
        assert await ledger.balance_of(ids[0]) == Decimal("1.00")


class TestExactlyOnce:
    """Test idempotent delivery."""

    @pytest.mark.asyncio
    async def test_repeated_notification(self, ledger, member):
        """Redelivery of the same provider reference pays nothing twice."""
        a_id, b_id, c_id = await build_chain(member, 3)

        first = await ledger.notify_deposit_confirmed(
            c_id, Decimal("100"), "USDT", "provider-tx-1"
        )
        first_id = first.id
        second = await ledger.notify_deposit_confirmed(
            c_id, Decimal("100"), "USDT", "provider-tx-1"
        )

        assert second.id == first_id
        assert await ledger.balance_of(c_id) == Decimal("100")
        assert await ledger.balance_of(b_id) == Decimal("10.00")
        assert await ledger.balance_of(a_id) == Decimal("5.00")

    @pytest.mark.asyncio
    async def test_redistribute_reports_paid_levels(self, ledger, member):
        _, _, c_id = await build_chain(member, 3)
        deposit = await ledger.notify_deposit_confirmed(
            c_id, Decimal("100"), "USDT", "provider-tx-1"
        )

        result = await ledger.commissions.distribute(deposit.id)

        assert result.paid == []
        assert result.already_paid_levels == [1, 2]
        assert result.complete

    @pytest.mark.asyncio
    async def test_non_commissionable_entry_ignored(self, ledger, member, fund):
        a_id = await member("alice")
        b_id = await member("bob", a_id)
        entry = await ledger.wallet.credit(
            b_id, Decimal("50"), EntryKind.ADMIN_ADJUSTMENT, note="bonus"
        )

        result = await ledger.commissions.distribute(entry.id)

        assert result.paid == []
        assert await ledger.balance_of(a_id) == Decimal("0")


class TestInactiveAncestors:
    """Test inactive ancestor handling."""

    @pytest.mark.asyncio
    async def test_skip_policy(self, ledger, member):
        """An inactive level is skipped; the level above keeps its own rate."""
        a_id, b_id, c_id = await build_chain(member, 3)
        await ledger.set_account_status(b_id, AccountStatus.INACTIVE, admin_id=1)

        deposit = await ledger.notify_deposit_confirmed(
            c_id, Decimal("100"), "USDT", "tx-skip"
        )

        assert await ledger.balance_of(b_id) == Decimal("0")
        assert await ledger.balance_of(a_id) == Decimal("5.00")
        result = await ledger.commissions.distribute(deposit.id)
        assert 1 in result.skipped_levels

    @pytest.mark.asyncio
    async def test_compress_policy(self, ledger, member):
        """Active ancestors move up to fill the inactive level."""
        a_id, b_id, c_id = await build_chain(member, 3)
        await ledger.set_account_status(b_id, AccountStatus.INACTIVE, admin_id=1)
        ledger.commissions.policy = "compress"

        await ledger.notify_deposit_confirmed(c_id, Decimal("100"), "USDT", "tx-cmp")

        assert await ledger.balance_of(b_id) == Decimal("0")
        assert await ledger.balance_of(a_id) == Decimal("10.00")

    @pytest.mark.asyncio
    async def test_reactivated_account_earns_again(self, ledger, member):
        a_id, b_id, c_id = await build_chain(member, 3)
        await ledger.set_account_status(b_id, AccountStatus.INACTIVE)
        await ledger.set_account_status(b_id, AccountStatus.ACTIVE)

        await ledger.notify_deposit_confirmed(c_id, Decimal("100"), "USDT", "tx-re")

        assert await ledger.balance_of(b_id) == Decimal("10.00")


class TestFrozenAncestors:
    """Test deferral of levels owned by frozen ledgers."""

    @pytest.mark.asyncio
    async def test_frozen_level_filled_by_retry(self, ledger, member, session):
        a_id, b_id, c_id = await build_chain(member, 3)
        await session.execute(
            update(Account).where(Account.id == a_id).values(ledger_frozen=True)
        )
        await session.commit()

        deposit = await ledger.notify_deposit_confirmed(
            c_id, Decimal("100"), "USDT", "tx-frozen"
        )
        deposit_id = deposit.id

        assert await ledger.balance_of(b_id) == Decimal("10.00")
        assert await ledger.balance_of(a_id) == Decimal("0")

        await ledger.unfreeze_account(a_id, admin_id=1)
        created = await ledger.retry_commissions(timedelta(hours=1))

        assert created == 1
        assert await ledger.balance_of(a_id) == Decimal("5.00")
        commissions = await ledger.wallet.entry_repo.find_for_source(deposit_id)
        assert len(commissions) == 2

    @pytest.mark.asyncio
    async def test_retry_walks_whole_window(self, ledger, member, session):
        """Sources beyond the first batch are retried too."""
        a_id, b_id, c_id = await build_chain(member, 3)
        await session.execute(
            update(Account).where(Account.id == a_id).values(ledger_frozen=True)
        )
        await session.commit()

        for i in range(5):
            await ledger.notify_deposit_confirmed(
                c_id, Decimal("100"), "USDT", f"tx-batch-{i}"
            )
        assert await ledger.balance_of(a_id) == Decimal("0")

        await ledger.unfreeze_account(a_id, admin_id=1)
        created = await ledger.retry_commissions(timedelta(hours=1), batch_size=2)

        assert created == 5
        assert await ledger.balance_of(a_id) == Decimal("25.00")
        assert await ledger.retry_commissions(timedelta(hours=1), batch_size=2) == 0
