"""
Money helpers.

All amounts are Decimal. Rounding is half-up to the currency's minor
unit, applied once per computed amount.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from ledger_engine.config.business_constants import CURRENCY_MINOR_UNITS
from ledger_engine.utils.exceptions import InvalidAmount

# Storage precision of MoneyType columns
STORAGE_QUANTUM = Decimal("0.00000001")


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Convert value to Decimal.

    Floats are rejected: they cannot represent most currency amounts.

    Raises:
        InvalidAmount: If value is a float or not numeric
    """
    if isinstance(value, float):
        raise InvalidAmount("Amounts must be Decimal, int or str, not float")
    try:
        result = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise InvalidAmount(f"Invalid amount: {value!r}") from e
    if not result.is_finite():
        raise InvalidAmount(f"Invalid amount: {value!r}")
    return result


def minor_unit(currency: str) -> Decimal:
    """
    Get the smallest unit of currency as a quantum.

    >>> minor_unit("USDT")
    Decimal('0.01')
    """
    places = CURRENCY_MINOR_UNITS.get(currency.upper(), 2)
    return Decimal(1).scaleb(-places)


def round_money(amount: Decimal, currency: str) -> Decimal:
    """Round half-up to the currency's minor unit."""
    return amount.quantize(minor_unit(currency), rounding=ROUND_HALF_UP)


def normalize_stored(amount: Decimal) -> Decimal:
    """
    Quantize to storage precision.

    Used when comparing values read back from the database, which may
    come back with a different exponent (or as float on SQLite).
    """
    return Decimal(str(amount)).quantize(STORAGE_QUANTUM, rounding=ROUND_HALF_UP)


def require_positive(amount: Decimal | int | str) -> Decimal:
    """
    Validate that amount is a positive number.

    Raises:
        InvalidAmount: If amount is zero or negative
    """
    value = to_decimal(amount)
    if value <= 0:
        raise InvalidAmount(f"Amount must be positive, got {value}")
    return value


def require_money(amount: Decimal | int | str, currency: str) -> Decimal:
    """
    Validate a positive amount that fits the currency's minor unit.

    >>> require_money("10.50", "USDT")
    Decimal('10.50')

    Raises:
        InvalidAmount: If amount is not positive or is finer than the
            minor unit (10.005 USDT)
    """
    value = require_positive(amount)
    if value % minor_unit(currency) != 0:
        raise InvalidAmount(
            f"Amount {value} has more precision than {currency.upper()} allows"
        )
    return value
