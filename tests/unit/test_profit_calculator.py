"""
Unit tests for fixed-term profit calculations.

Tests cover:
- Full-term profit of the seeded plans
- Partial accrual by fractional days
- Clamping before start and after maturity
- Progress percentage
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

from ledger_engine.services.investment.profit_calculator import (
    ProfitCalculator,
    timedelta_days,
)

START = datetime(2026, 1, 1, tzinfo=UTC)


class TestFullTermProfit:
    """Test profit at maturity."""

    def test_starter_plan(self):
        """100 at 5% for 30 days earns 5.00."""
        profit = ProfitCalculator.full_term_profit(
            Decimal("100"), Decimal("5"), 30, "USDT"
        )
        assert profit == Decimal("5.00")

    def test_growth_plan(self):
        """1000 at 7% for 90 days earns three months of profit."""
        profit = ProfitCalculator.full_term_profit(
            Decimal("1000"), Decimal("7"), 90, "USDT"
        )
        assert profit == Decimal("210.00")

    def test_premium_plan_upper_bound(self):
        """100000 at 10% for 180 days earns 60000.00."""
        profit = ProfitCalculator.full_term_profit(
            Decimal("100000"), Decimal("10"), 180, "USDT"
        )
        assert profit == Decimal("60000.00")


class TestAccruedProfit:
    """Test accrual during the term."""

    def test_half_term(self):
        """Halfway through a 90 day term half the profit has accrued."""
        profit = ProfitCalculator.accrued_profit(
            Decimal("1000"),
            Decimal("7"),
            90,
            START,
            START + timedelta(days=45),
            "USDT",
        )
        assert profit == Decimal("105.00")

    def test_fractional_day(self):
        """Twelve hours count as half a day."""
        profit = ProfitCalculator.accrued_profit(
            Decimal("1000"),
            Decimal("6"),
            30,
            START,
            START + timedelta(hours=12),
            "USDT",
        )
        # 1000 * 0.06 * 0.5 / 30
        assert profit == Decimal("1.00")

    def test_clamped_after_maturity(self):
        """Profit stops growing once the term has elapsed."""
        at_maturity = ProfitCalculator.accrued_profit(
            Decimal("100"), Decimal("5"), 30, START, START + timedelta(days=30), "USDT"
        )
        much_later = ProfitCalculator.accrued_profit(
            Decimal("100"), Decimal("5"), 30, START, START + timedelta(days=400), "USDT"
        )
        assert at_maturity == much_later == Decimal("5.00")

    def test_before_start_is_zero(self):
        profit = ProfitCalculator.accrued_profit(
            Decimal("100"), Decimal("5"), 30, START, START - timedelta(days=1), "USDT"
        )
        assert profit == Decimal("0.00")

    def test_pending_investment_is_zero(self):
        """No start time means nothing accrued."""
        assert ProfitCalculator.elapsed_days(None, START, 30) == Decimal("0")

    def test_naive_datetime_treated_as_utc(self):
        """SQLite returns naive datetimes."""
        naive_start = START.replace(tzinfo=None)
        days = ProfitCalculator.elapsed_days(
            naive_start, START + timedelta(days=3), 30
        )
        assert days == Decimal("3")


class TestProgress:
    """Test progress percentage."""

    def test_progress_half(self):
        progress = ProfitCalculator.progress_percent(
            START, START + timedelta(days=15), 30
        )
        assert progress == 50.0

    def test_progress_capped(self):
        progress = ProfitCalculator.progress_percent(
            START, START + timedelta(days=99), 30
        )
        assert progress == 100.0


def test_timedelta_days():
    assert timedelta_days(timedelta(days=1, hours=12)) == Decimal("1.5")
