"""Tests for integer-cent money helpers."""

import pytest
from decimal import Decimal

from clearledger.money import AmountParseError, format_cents, from_cents, parse_amount, to_cents


class TestToCents:
    """Test decimal to cents conversion."""

    def test_decimal_string(self):
        """Two-place strings convert exactly."""
        assert to_cents("12.34") == 1234

    def test_float_does_not_drift(self):
        """Floats go through their repr so 0.1 + 0.2 style drift never appears."""
        assert to_cents(0.1) == 10
        assert to_cents(19.99) == 1999

    def test_rounds_half_up(self):
        """Sub-cent values round half up."""
        assert to_cents("0.005") == 1
        assert to_cents("-0.005") == -1

    def test_rejects_garbage(self):
        """Non-numeric input raises."""
        with pytest.raises(AmountParseError):
            to_cents("abc")


class TestParseAmount:
    """Test bank export amount parsing."""

    def test_currency_and_thousands(self):
        """Currency symbols and separators are stripped."""
        assert parse_amount("$1,234.50") == 123450

    def test_parentheses_are_negative(self):
        """Accounting parentheses mean a negative amount."""
        assert parse_amount("(42.00)") == -4200

    def test_blank_is_an_error(self):
        """A blank amount is never read as zero."""
        with pytest.raises(AmountParseError):
            parse_amount("  ")

    def test_sum_of_cents_is_exact(self):
        """Many small amounts add up without floating point error."""
        total = sum(parse_amount("0.10") for _ in range(3))
        assert total == 30


class TestFormatting:
    """Test cents back to decimal."""

    def test_from_cents(self):
        assert from_cents(-1999) == Decimal("-19.99")
        assert from_cents(None) is None

    def test_format_cents(self):
        assert format_cents(-123450) == "-1,234.50"
        assert format_cents(5) == "0.05"
