"""
Standard type definitions for database models.

Provides consistent types for monetary, percentage and metadata fields
across all models.
"""

from sqlalchemy import DECIMAL, JSON
from sqlalchemy.dialects.postgresql import JSONB

# Standard money type for amounts, balances, commissions
# Precision: 18 digits total, 8 after decimal point
# Range: up to 9,999,999,999.99999999
MoneyType = DECIMAL(18, 8)

# Precise rate percentage type for plan rates
# Precision: 10 digits total, 4 after decimal point
# Suitable for: monthly plan rates (e.g., 5.0000%, 12.5000%)
RatePercentType = DECIMAL(10, 4)

# JSONB on PostgreSQL, plain JSON elsewhere (tests run on SQLite)
MetadataType = JSON().with_variant(JSONB(), "postgresql")
