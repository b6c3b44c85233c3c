"""
Profit calculator module.

Pure accrual math for fixed-term investments:

    profit = principal * (monthly_rate / 100) * (elapsed_days / 30)

Elapsed time is measured in fractional days and clamped to the term.
"""

from datetime import datetime, timedelta
from decimal import Decimal

from ledger_engine.config.business_constants import DAYS_PER_MONTH
from ledger_engine.utils.datetime_utils import ensure_utc
from ledger_engine.utils.money import round_money

SECONDS_PER_DAY = Decimal(86400)


def timedelta_days(delta: timedelta) -> Decimal:
    """
    Convert a timedelta to fractional days without float rounding.

    >>> timedelta_days(timedelta(days=1, hours=12))
    Decimal('1.5')
    """
    micro = (
        (delta.days * 86400 + delta.seconds) * 1_000_000 + delta.microseconds
    )
    return Decimal(micro) / (SECONDS_PER_DAY * 1_000_000)


class ProfitCalculator:
    """Calculates accrued profit of fixed-term investments."""

    @staticmethod
    def elapsed_days(
        started_at: datetime | None,
        now: datetime,
        duration_days: int,
    ) -> Decimal:
        """
        Days elapsed since activation, clamped to [0, duration_days].

        Args:
            started_at: Activation time (None while pending)
            now: Evaluation time
            duration_days: Term length

        Returns:
            Elapsed fractional days
        """
        if started_at is None:
            return Decimal("0")
        delta = ensure_utc(now) - ensure_utc(started_at)
        elapsed = timedelta_days(delta)
        if elapsed < 0:
            return Decimal("0")
        return min(elapsed, Decimal(duration_days))

    @staticmethod
    def profit_for_days(
        principal: Decimal,
        monthly_rate: Decimal,
        days: Decimal,
        currency: str,
    ) -> Decimal:
        """
        Profit for a number of elapsed days, rounded half-up.

        Args:
            principal: Invested amount
            monthly_rate: Percent per 30 days
            days: Elapsed fractional days
            currency: Currency for rounding

        Returns:
            Profit in currency minor units
        """
        raw = principal * (monthly_rate / Decimal(100)) * (days / DAYS_PER_MONTH)
        return round_money(raw, currency)

    @classmethod
    def accrued_profit(
        cls,
        principal: Decimal,
        monthly_rate: Decimal,
        duration_days: int,
        started_at: datetime | None,
        now: datetime,
        currency: str,
    ) -> Decimal:
        """Profit accrued at now."""
        days = cls.elapsed_days(started_at, now, duration_days)
        return cls.profit_for_days(principal, monthly_rate, days, currency)

    @classmethod
    def full_term_profit(
        cls,
        principal: Decimal,
        monthly_rate: Decimal,
        duration_days: int,
        currency: str,
    ) -> Decimal:
        """Profit at maturity."""
        return cls.profit_for_days(
            principal, monthly_rate, Decimal(duration_days), currency
        )

    @classmethod
    def progress_percent(
        cls,
        started_at: datetime | None,
        now: datetime,
        duration_days: int,
    ) -> float:
        """Share of the term elapsed, 0-100."""
        if duration_days <= 0:
            return 100.0
        days = cls.elapsed_days(started_at, now, duration_days)
        return float(days / Decimal(duration_days) * 100)
