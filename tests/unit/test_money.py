"""
Unit tests for money helpers.

Tests cover:
- Decimal conversion and float rejection
- Half-up rounding to the currency minor unit
- Positive amount validation
- Minor-unit precision of amounts
"""

from decimal import Decimal

import pytest

from ledger_engine.utils.exceptions import InvalidAmount
from ledger_engine.utils.money import (
    minor_unit,
    normalize_stored,
    require_money,
    require_positive,
    round_money,
    to_decimal,
)


class TestToDecimal:
    """Test amount conversion."""

    def test_string_and_int_accepted(self):
        """Strings and ints convert exactly."""
        assert to_decimal("10.10") == Decimal("10.10")
        assert to_decimal(5) == Decimal("5")

    def test_float_rejected(self):
        """Floats cannot represent currency amounts."""
        with pytest.raises(InvalidAmount):
            to_decimal(0.1)

    def test_garbage_rejected(self):
        """Non-numeric input is an invalid amount."""
        with pytest.raises(InvalidAmount):
            to_decimal("ten")

    def test_infinity_rejected(self):
        with pytest.raises(InvalidAmount):
            to_decimal("Infinity")


class TestRounding:
    """Test currency rounding."""

    def test_usdt_has_two_places(self):
        assert minor_unit("USDT") == Decimal("0.01")

    def test_btc_has_eight_places(self):
        assert minor_unit("btc") == Decimal("0.00000001")

    def test_half_up(self):
        """0.005 rounds away from zero."""
        assert round_money(Decimal("0.005"), "USDT") == Decimal("0.01")
        assert round_money(Decimal("0.0049"), "USDT") == Decimal("0.00")

    def test_commission_of_odd_amount(self):
        """3% of 33.33 is 0.9999 and rounds to 1.00."""
        assert round_money(Decimal("33.33") * Decimal("0.03"), "USDT") == Decimal(
            "1.00"
        )

    def test_normalize_stored(self):
        """Values with different exponents compare equal after normalizing."""
        assert normalize_stored(Decimal("10")) == normalize_stored(
            Decimal("10.00000000")
        )


class TestRequirePositive:
    """Test positive amount validation."""

    @pytest.mark.parametrize("amount", ["0", "-1", Decimal("-0.01")])
    def test_non_positive_rejected(self, amount):
        with pytest.raises(InvalidAmount):
            require_positive(amount)

    def test_positive_returned_as_decimal(self):
        assert require_positive("12.5") == Decimal("12.5")


class TestRequireMoney:
    """Test precision checks against the currency minor unit."""

    @pytest.mark.parametrize("amount", ["10", "10.5", "10.50", Decimal("0.01")])
    def test_usdt_amounts_accepted(self, amount):
        assert require_money(amount, "USDT") == Decimal(amount)

    def test_sub_cent_usdt_rejected(self):
        with pytest.raises(InvalidAmount):
            require_money("10.005", "USDT")

    def test_btc_allows_satoshis(self):
        assert require_money("0.00000001", "BTC") == Decimal("0.00000001")

    def test_non_positive_still_rejected(self):
        with pytest.raises(InvalidAmount):
            require_money("0", "USDT")
