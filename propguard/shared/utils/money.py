"""Decimal helpers for money and percentage arithmetic."""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from numbers import Number
from typing import Any, Optional, Union

Numeric = Union[int, float, Decimal]

HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def as_decimal(value: Any) -> Optional[Decimal]:
    """
    Convert a numeric value to Decimal.

    Returns None for anything that is not a finite number. Booleans and
    strings are not numbers here; floats go through str() so 0.1 stays 0.1.
    """
    if isinstance(value, bool) or not isinstance(value, Number):
        return None

    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError):
            return None

    if not result.is_finite():
        return None
    return result


def parse_decimal(value: Any) -> Optional[Decimal]:
    """Like as_decimal, but also accepts numeric strings (used for rule input and storage)."""
    if isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except (InvalidOperation, ValueError):
            return None
        return result if result.is_finite() else None
    return as_decimal(value)


def percent_of(amount: Decimal, percentage: Decimal) -> Decimal:
    """Return percentage% of amount."""
    return percentage / HUNDRED * amount


def quantize_money(amount: Decimal) -> Decimal:
    """Round to cents."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def format_usd(amount: Numeric) -> str:
    """Format an amount as US dollars, e.g. $1,234.50 or -$80.00."""
    value = quantize_money(Decimal(str(amount)))
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"
