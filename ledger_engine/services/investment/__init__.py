"""
Fixed-term investment services package.

- profit_calculator: pure accrual math
- investment_service: lifecycle, payouts and the maturity sweep
"""

from ledger_engine.services.investment.investment_service import (
    InvestmentService,
    InvestmentView,
    SweepResult,
)
from ledger_engine.services.investment.profit_calculator import (
    ProfitCalculator,
    timedelta_days,
)

__all__ = [
    "InvestmentService",
    "InvestmentView",
    "SweepResult",
    "ProfitCalculator",
    "timedelta_days",
]
