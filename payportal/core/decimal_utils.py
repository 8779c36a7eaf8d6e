"""
PayPortal — Decimal Utilities
Monetary amounts are Decimal end to end. Never use float near monetary values.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, getcontext
from typing import Optional, Union

getcontext().prec = 28

CENTS = Decimal("0.01")


def monetary(value: Union[str, int, float, Decimal]) -> Decimal:
    """
    Convert any numeric value to a Decimal suitable for monetary calculations.
    Raises TypeError on non-numeric input to prevent silent float contamination.
    """
    if isinstance(value, bool):
        raise TypeError("Cannot convert bool to Decimal monetary value")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # Force via string to avoid float imprecision
        return Decimal(str(value))
    if isinstance(value, (int, str)):
        return Decimal(value)
    raise TypeError(f"Cannot convert {type(value).__name__} to Decimal monetary value")


def parse_amount(value: Union[str, int, float, Decimal]) -> Optional[Decimal]:
    """Return the Decimal for `value`, or None when it is not a finite number."""
    try:
        amount = monetary(value)
    except (TypeError, InvalidOperation):
        return None
    if not amount.is_finite():
        return None
    return amount


def fractional_places(amount: Decimal) -> int:
    """Number of digits after the decimal point as written ("5.10" -> 2)."""
    exponent = amount.as_tuple().exponent
    return -exponent if isinstance(exponent, int) and exponent < 0 else 0


def to_cents(amount: Decimal) -> Decimal:
    """Quantize to exactly two places. Callers validate precision beforehand."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def is_positive(amount: Decimal) -> bool:
    return amount > Decimal("0")
