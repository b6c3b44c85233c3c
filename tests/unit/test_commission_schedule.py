"""
Unit tests for commission schedules.

Tests cover:
- Level to rate mapping
- Depth cap
- Fallback for unknown families
"""

from decimal import Decimal

from ledger_engine.services.referral.config import (
    CommissionSchedule,
    get_schedule,
)


class TestCommissionSchedule:
    """Test rate lookup."""

    def test_deposit_rates(self):
        """Direct referrer earns 10%, level 5 earns 1%."""
        schedule = get_schedule("deposit")
        assert schedule.rate_for(1) == Decimal("0.10")
        assert schedule.rate_for(2) == Decimal("0.05")
        assert schedule.rate_for(5) == Decimal("0.01")

    def test_beyond_table_earns_nothing(self):
        schedule = get_schedule("deposit")
        assert schedule.rate_for(0) is None
        assert schedule.rate_for(6) is None

    def test_max_depth(self):
        assert get_schedule("fixed_term").max_depth == 5

    def test_depth_cap(self):
        """A smaller configured depth truncates the table."""
        schedule = get_schedule("matrix", depth=2)
        assert schedule.max_depth == 2
        assert schedule.rate_for(3) is None

    def test_unknown_family_falls_back_to_deposit(self):
        assert get_schedule("unknown").rates == get_schedule("deposit").rates

    def test_custom_schedule(self):
        schedule = CommissionSchedule("custom", (Decimal("0.2"),))
        assert schedule.rate_for(1) == Decimal("0.2")
        assert schedule.rate_for(2) is None
