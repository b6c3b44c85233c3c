"""
Integration tests for matrix boards.

Tests cover:
- Joining a board and the one-open-position rule
- Qualification by direct referrals only, counted once
- Completion: payout, re-entry debit and next cycle
- Inactive sponsors and buyers
- Catalogue board completing on the fifteenth referral
- Balance-funded re-entry deferred until funds arrive
- Catalogue seeding
"""

from decimal import Decimal

import pytest

from ledger_engine.config.business_constants import (
    FIXED_TERM_PLANS,
    MATRIX_BOARDS,
    MATRIX_REQUIRED_REFERRALS,
)
from ledger_engine.models.enums import (
    AccountStatus,
    EntryKind,
    MatrixPositionStatus,
    PlanFamily,
)
from ledger_engine.services.events import EventType
from ledger_engine.utils.exceptions import AlreadyOnBoard, PlanConfigurationError


@pytest.fixture
async def board_id(ledger):
    """Board joined for 10 that pays 200 with 25 re-entry after two referrals."""
    plan = await ledger.plans.create_matrix_board(
        name="Test Board",
        amount=Decimal("10"),
        total_income=Decimal("200"),
        reentry_amount=Decimal("25"),
        required_referrals=2,
        reward_gift="Gift",
    )
    return plan.id


@pytest.fixture
def join(ledger, fund):
    """Factory: fund an account with the join amount and buy the board."""

    async def _join(account_id: int, plan_id: int):
        await fund(account_id, "10")
        return await ledger.purchase_plan(account_id, plan_id, Decimal("10"))

    return _join


class TestJoining:
    """Test opening board positions."""

    @pytest.mark.asyncio
    async def test_join_opens_cycle_one(self, ledger, member, join, board_id):
        account_id = await member("alice")

        result = await join(account_id, board_id)

        assert result.position_id is not None
        assert result.entry.extra["plan_family"] == PlanFamily.MATRIX
        [view] = await ledger.matrix_position_of(account_id)
        assert view.cycle == 1
        assert view.status == MatrixPositionStatus.FILLING
        assert view.remaining == 2
        assert view.net_payout == Decimal("175")
        assert await ledger.balance_of(account_id) == Decimal("0")

    @pytest.mark.asyncio
    async def test_cannot_join_twice(self, ledger, member, join, fund, board_id):
        account_id = await member("alice")
        await join(account_id, board_id)
        await fund(account_id, "10")

        with pytest.raises(AlreadyOnBoard):
            await ledger.purchase_plan(account_id, board_id, Decimal("10"))

        assert await ledger.balance_of(account_id) == Decimal("10")

    @pytest.mark.asyncio
    async def test_inconsistent_board_rejected(self, ledger):
        with pytest.raises(PlanConfigurationError):
            await ledger.plans.create_matrix_board(
                name="Broken",
                amount=Decimal("10"),
                total_income=Decimal("200"),
                reentry_amount=Decimal("25"),
                total_income_after_reentry=Decimal("150"),
            )


class TestQualification:
    """Test counting direct referrals."""

    @pytest.mark.asyncio
    async def test_direct_referral_counts(self, ledger, member, join, board_id):
        sponsor_id = await member("sponsor")
        referral_id = await member("ref1", sponsor_id)
        await join(sponsor_id, board_id)

        result = await join(referral_id, board_id)

        [view] = await ledger.matrix_position_of(sponsor_id)
        assert view.qualified_count == 1
        assert result.credited_position_id == view.position_id

    @pytest.mark.asyncio
    async def test_counted_once(self, ledger, member, join, board_id):
        sponsor_id = await member("sponsor")
        referral_id = await member("ref1", sponsor_id)
        await join(sponsor_id, board_id)
        result = await join(referral_id, board_id)

        again = await ledger.matrix.record_qualification(result.entry.id)

        assert again is None
        [view] = await ledger.matrix_position_of(sponsor_id)
        assert view.qualified_count == 1

    @pytest.mark.asyncio
    async def test_indirect_referral_does_not_count(
        self, ledger, member, join, board_id
    ):
        sponsor_id = await member("sponsor")
        middle_id = await member("middle", sponsor_id)
        grandchild_id = await member("grandchild", middle_id)
        await join(sponsor_id, board_id)

        await join(grandchild_id, board_id)

        [view] = await ledger.matrix_position_of(sponsor_id)
        assert view.qualified_count == 0

    @pytest.mark.asyncio
    async def test_sponsor_not_on_board(self, ledger, member, join, board_id):
        sponsor_id = await member("sponsor")
        referral_id = await member("ref1", sponsor_id)

        result = await join(referral_id, board_id)

        assert result.credited_position_id is None
        assert await ledger.matrix_position_of(sponsor_id) == []

    @pytest.mark.asyncio
    async def test_inactive_sponsor_gets_no_credit(
        self, ledger, member, join, board_id
    ):
        sponsor_id = await member("sponsor")
        referral_id = await member("ref1", sponsor_id)
        await join(sponsor_id, board_id)
        await ledger.set_account_status(sponsor_id, AccountStatus.INACTIVE)

        await join(referral_id, board_id)

        [view] = await ledger.matrix_position_of(sponsor_id)
        assert view.qualified_count == 0

    @pytest.mark.asyncio
    async def test_inactive_buyer_gives_no_credit(
        self, ledger, member, join, board_id
    ):
        sponsor_id = await member("sponsor")
        referral_id = await member("ref1", sponsor_id)
        await join(sponsor_id, board_id)
        await ledger.set_account_status(referral_id, AccountStatus.INACTIVE)

        result = await join(referral_id, board_id)

        assert result.credited_position_id is None
        [view] = await ledger.matrix_position_of(sponsor_id)
        assert view.qualified_count == 0


class TestCompletion:
    """Test board completion and re-entry."""

    @pytest.mark.asyncio
    async def test_completion_pays_and_reenters(
        self, ledger, member, join, board_id, recorded_events
    ):
        sponsor_id = await member("sponsor")
        first_id = await member("ref1", sponsor_id)
        second_id = await member("ref2", sponsor_id)
        await join(sponsor_id, board_id)

        await join(first_id, board_id)
        await join(second_id, board_id)

        # 2 x 1.00 commission + 200 payout - 25 re-entry
        assert await ledger.balance_of(sponsor_id) == Decimal("177.00")

        views = await ledger.matrix_position_of(sponsor_id, board_id)
        assert [(v.cycle, v.status) for v in views] == [
            (1, MatrixPositionStatus.RE_ENTERED),
            (2, MatrixPositionStatus.FILLING),
        ]
        assert views[1].qualified_count == 0

        kinds = [e.kind for e in (await ledger.ledger_of(sponsor_id)).entries]
        assert kinds.count(EntryKind.MATRIX_PAYOUT) == 1
        assert kinds.count(EntryKind.MATRIX_REENTRY_DEBIT) == 1

        completed = [e for e in recorded_events if e.type == EventType.BOARD_COMPLETED]
        assert len(completed) == 1
        assert completed[0].account_id == sponsor_id
        assert Decimal(completed[0].payload["net"]) == Decimal("175")

        assert (await ledger.reconcile(sponsor_id)).matches

    @pytest.mark.asyncio
    async def test_catalogue_board_completes_on_fifteenth_referral(
        self, ledger, member, fund
    ):
        """200 payout minus 25 re-entry nets 175 once 15 referrals bought."""
        board = await ledger.plans.create_matrix_board(**MATRIX_BOARDS[0])
        board_id = board.id
        assert board.required_referrals == MATRIX_REQUIRED_REFERRALS == 15

        async def buy(account_id: int):
            await fund(account_id, "25")
            return await ledger.purchase_plan(account_id, board_id, Decimal("25"))

        sponsor_id = await member("sponsor")
        await buy(sponsor_id)
        referrals = [
            await member(f"ref{i}", sponsor_id)
            for i in range(MATRIX_REQUIRED_REFERRALS)
        ]

        for referral_id in referrals[:-1]:
            await buy(referral_id)

        [view] = await ledger.matrix_position_of(sponsor_id, board_id)
        assert view.status == MatrixPositionStatus.FILLING
        assert view.qualified_count == 14
        # 14 x 2.50 level-1 commission
        assert await ledger.balance_of(sponsor_id) == Decimal("35.00")

        await buy(referrals[-1])

        views = await ledger.matrix_position_of(sponsor_id, board_id)
        assert [(v.cycle, v.status, v.qualified_count) for v in views] == [
            (1, MatrixPositionStatus.RE_ENTERED, 15),
            (2, MatrixPositionStatus.FILLING, 0),
        ]
        entries = (await ledger.ledger_of(sponsor_id, per_page=100)).entries
        payout = [e.amount for e in entries if e.kind == EntryKind.MATRIX_PAYOUT]
        reentry = [
            e.amount for e in entries if e.kind == EntryKind.MATRIX_REENTRY_DEBIT
        ]
        assert payout == [Decimal("200")]
        assert reentry == [Decimal("-25")]
        assert payout[0] + reentry[0] == Decimal("175")
        assert await ledger.balance_of(sponsor_id) == Decimal("212.50")
        assert (await ledger.reconcile(sponsor_id)).matches

    @pytest.mark.asyncio
    async def test_completion_is_idempotent(self, ledger, member, join, board_id):
        sponsor_id = await member("sponsor")
        first_id = await member("ref1", sponsor_id)
        second_id = await member("ref2", sponsor_id)
        await join(sponsor_id, board_id)
        await join(first_id, board_id)
        await join(second_id, board_id)
        views = await ledger.matrix_position_of(sponsor_id, board_id)

        assert await ledger.matrix.complete_if_due(views[0].position_id) is None
        assert await ledger.retry_matrix_completions() == []
        assert await ledger.balance_of(sponsor_id) == Decimal("177.00")

    @pytest.mark.asyncio
    async def test_next_cycle_fills_from_new_referrals(
        self, ledger, member, join, board_id
    ):
        sponsor_id = await member("sponsor")
        referrals = [await member(f"ref{i}", sponsor_id) for i in range(3)]
        await join(sponsor_id, board_id)

        for referral_id in referrals:
            await join(referral_id, board_id)

        views = await ledger.matrix_position_of(sponsor_id, board_id)
        assert views[-1].cycle == 2
        assert views[-1].qualified_count == 1

    @pytest.mark.asyncio
    async def test_balance_funded_reentry_waits_for_funds(
        self, ledger, member, join, fund, board_id
    ):
        """With balance funding the completion is retried once funds arrive."""
        ledger.matrix.reentry_funding = "balance"
        sponsor_id = await member("sponsor")
        first_id = await member("ref1", sponsor_id)
        second_id = await member("ref2", sponsor_id)
        await join(sponsor_id, board_id)
        await join(first_id, board_id)

        await join(second_id, board_id)

        [view] = await ledger.matrix_position_of(sponsor_id, board_id)
        assert view.status == MatrixPositionStatus.FILLING
        assert view.qualified_count == 2
        assert await ledger.balance_of(sponsor_id) == Decimal("2.00")

        await fund(sponsor_id, "23")
        completed = await ledger.retry_matrix_completions()

        assert completed == [view.position_id]
        assert await ledger.balance_of(sponsor_id) == Decimal("200.00")


class TestCatalogue:
    """Test seeding the default plans."""

    @pytest.mark.asyncio
    async def test_seed_is_idempotent(self, ledger):
        created = await ledger.plans.seed_catalogue()
        again = await ledger.plans.seed_catalogue()

        assert len(created) == len(FIXED_TERM_PLANS) + len(MATRIX_BOARDS)
        assert again == []

        boards = await ledger.plans.list_active(PlanFamily.MATRIX)
        assert [b.name for b in boards][:1] == ["Board 1"]
        for board in boards:
            assert board.total_income_after_reentry == (
                board.total_income - board.reentry_amount
            )
