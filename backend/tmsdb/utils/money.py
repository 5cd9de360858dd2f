from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

_CENT = Decimal("1")


def to_minor_units(value: Any) -> Optional[int]:
    """
    Convert a decimal amount ("250.00", 250, 19.999) to integer minor units.

    Blank input means "no cost". Rounds half-up to the nearest cent.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("cost must be a decimal amount")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValueError("cost must be a decimal amount")
    if not amount.is_finite() or amount < 0:
        raise ValueError("cost must be a non-negative amount")
    return int((amount * 100).quantize(_CENT, rounding=ROUND_HALF_UP))

