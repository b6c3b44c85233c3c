"""
Business logic constants for the ledger engine.

Central location for business rules: commission schedules, currency
precision and the matrix board catalogue. Nothing in this module imports
settings, so it can be loaded from anywhere without circular imports.
"""

from decimal import Decimal

# Ledger
DEFAULT_CURRENCY = "USDT"

# Decimal places of the smallest unit of each supported currency
CURRENCY_MINOR_UNITS = {
    "USDT": 2,
    "USD": 2,
    "EUR": 2,
    "BTC": 8,
}

# Referral tree
# Commissions never look further up than this many ancestors
REFERRAL_DEPTH = 5

# Levels of the network tree returned to dashboards
NETWORK_TREE_DEPTH = 5

# Commission schedules per plan family.
# Key is the ancestor distance, value is the fraction of the source amount.
DEFAULT_COMMISSION_RATES = {
    1: Decimal("0.10"),  # 10% for direct referrer
    2: Decimal("0.05"),
    3: Decimal("0.03"),
    4: Decimal("0.02"),
    5: Decimal("0.01"),
}

COMMISSION_SCHEDULES = {
    "deposit": DEFAULT_COMMISSION_RATES,
    "fixed_term": DEFAULT_COMMISSION_RATES,
    "matrix": DEFAULT_COMMISSION_RATES,
}

# Fixed-term investments
# Monthly rate is applied per 30 days of elapsed term
DAYS_PER_MONTH = Decimal("30")
MATURITY_SWEEP_INTERVAL_SECONDS = 60

# Matrix boards: join amount, total income, re-entry amount, gift.
# Every board completes after 15 qualifying direct referrals.
MATRIX_REQUIRED_REFERRALS = 15

MATRIX_BOARDS = [
    {
        "name": "Board 1",
        "amount": Decimal("25"),
        "total_income": Decimal("200"),
        "reentry_amount": Decimal("25"),
        "reward_gift": "Health Product",
    },
    {
        "name": "Board 2",
        "amount": Decimal("100"),
        "total_income": Decimal("800"),
        "reentry_amount": Decimal("100"),
        "reward_gift": "Mobile Phone",
    },
    {
        "name": "Board 3",
        "amount": Decimal("500"),
        "total_income": Decimal("4000"),
        "reentry_amount": Decimal("500"),
        "reward_gift": "Tablet",
    },
    {
        "name": "Board 4",
        "amount": Decimal("1000"),
        "total_income": Decimal("8000"),
        "reentry_amount": Decimal("1000"),
        "reward_gift": "iPad",
    },
    {
        "name": "Board 5",
        "amount": Decimal("4000"),
        "total_income": Decimal("32000"),
        "reentry_amount": Decimal("4000"),
        "reward_gift": "Laptop",
    },
    {
        "name": "Board 6",
        "amount": Decimal("8000"),
        "total_income": Decimal("64000"),
        "reentry_amount": Decimal("8000"),
        "reward_gift": "Holiday Vacation",
    },
]

# Fixed-term plans seeded on a fresh database
FIXED_TERM_PLANS = [
    {
        "name": "Starter",
        "description": "Short term plan",
        "monthly_rate": Decimal("5"),
        "min_deposit": Decimal("100"),
        "max_deposit": Decimal("999"),
        "duration_days": 30,
    },
    {
        "name": "Growth",
        "description": "Quarterly plan",
        "monthly_rate": Decimal("7"),
        "min_deposit": Decimal("1000"),
        "max_deposit": Decimal("9999"),
        "duration_days": 90,
    },
    {
        "name": "Premium",
        "description": "Half-year plan",
        "monthly_rate": Decimal("10"),
        "min_deposit": Decimal("10000"),
        "max_deposit": Decimal("100000"),
        "duration_days": 180,
    },
]

# Referral codes
REFERRAL_CODE_MAX_LENGTH = 20
REFERRAL_CODE_SUFFIX_LENGTH = 8
