"""
Integer-cent money helpers.

All ledger arithmetic happens on ``int`` cents. ``Decimal`` only appears at the
edges (parsing user input, API responses).
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union

CENT = Decimal("0.01")

_STRIP_RE = re.compile(r"[$€£,\s]")

Number = Union[int, float, str, Decimal]


class AmountParseError(ValueError):
    """Raised when a string cannot be read as a monetary amount."""


def to_cents(value: Number) -> int:
    """Convert a decimal-ish value to integer cents, rounding half up."""
    if isinstance(value, float):
        # go through repr so 0.1 stays 0.1 rather than 0.1000000000000000055
        value = repr(value)
    try:
        amount = Decimal(value)
    except InvalidOperation as e:
        raise AmountParseError(f"Unable to parse amount: {value}") from e
    if not amount.is_finite():
        raise AmountParseError(f"Unable to parse amount: {value}")
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: Optional[int]) -> Optional[Decimal]:
    if cents is None:
        return None
    return (Decimal(cents) / 100).quantize(CENT)


def parse_amount(raw: Optional[str]) -> int:
    """
    Parse a bank-export amount string into cents.

    Currency symbols, thousands separators and whitespace are stripped.
    ``(42.00)`` is negative, following the accounting convention.
    Blank input is an error, never zero.
    """
    if raw is None or not str(raw).strip():
        raise AmountParseError("Amount value is missing.")

    cleaned = _STRIP_RE.sub("", str(raw))
    negative = False
    if cleaned.startswith("(") and cleaned.endswith(")"):
        cleaned = cleaned[1:-1]
        negative = True
    if cleaned.startswith("-(") and cleaned.endswith(")"):
        cleaned = cleaned[2:-1]
        negative = True

    if not cleaned:
        raise AmountParseError(f"Unable to parse amount: {raw}")

    cents = to_cents(cleaned)
    return -cents if negative else cents


def format_cents(cents: int) -> str:
    """Format cents as a signed dollar string, e.g. ``-1,234.50``."""
    sign = "-" if cents < 0 else ""
    return f"{sign}{from_cents(abs(cents)):,}"
