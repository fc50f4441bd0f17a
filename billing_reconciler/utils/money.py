"""Decimal helpers for monetary amounts"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

CENT = Decimal("0.01")


def to_decimal(value) -> Optional[Decimal]:
    """Convert value to Decimal (floats go through str to avoid binary noise)"""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_money(value) -> Decimal:
    """Quantize to cents, the precision amounts are stored with"""
    return to_decimal(value if value is not None else 0).quantize(CENT, rounding=ROUND_HALF_UP)
