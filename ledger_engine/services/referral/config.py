"""
Referral system configuration.

Commission schedules per plan family. The rate table is static and
read-only at runtime.
"""

from dataclasses import dataclass
from decimal import Decimal

from ledger_engine.config.business_constants import (
    COMMISSION_SCHEDULES,
    REFERRAL_DEPTH,
)


@dataclass(frozen=True)
class CommissionSchedule:
    """
    Rate table for one plan family.

    rates[0] applies to the direct referrer (level 1), rates[1] to
    level 2 and so on. Ancestors beyond the table earn nothing.
    """

    family: str
    rates: tuple[Decimal, ...]

    @property
    def max_depth(self) -> int:
        """Deepest level that earns commission."""
        return len(self.rates)

    def rate_for(self, level: int) -> Decimal | None:
        """
        Get the rate of an ancestor level.

        Args:
            level: Ancestor distance, 1 = direct referrer

        Returns:
            Rate as a fraction, or None beyond the table
        """
        if 1 <= level <= len(self.rates):
            return self.rates[level - 1]
        return None


def _build(family: str, rates: dict[int, Decimal]) -> CommissionSchedule:
    ordered = tuple(rates[level] for level in sorted(rates))
    return CommissionSchedule(family=family, rates=ordered[:REFERRAL_DEPTH])


SCHEDULES: dict[str, CommissionSchedule] = {
    family: _build(family, rates) for family, rates in COMMISSION_SCHEDULES.items()
}


def get_schedule(family: str, depth: int | None = None) -> CommissionSchedule:
    """
    Get the commission schedule of a plan family.

    Unknown families fall back to the deposit schedule.

    Args:
        family: deposit, fixed_term or matrix
        depth: Optional cap on the number of paid levels

    Returns:
        CommissionSchedule
    """
    schedule = SCHEDULES.get(family, SCHEDULES["deposit"])
    if depth is not None and depth < schedule.max_depth:
        return CommissionSchedule(schedule.family, schedule.rates[:depth])
    return schedule
