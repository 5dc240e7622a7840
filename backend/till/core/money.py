"""
Decimal helpers for currency values.

All amounts are kept as ``Decimal`` quantized to cents; float never enters a sum.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from till.core.config import settings


TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def money(value) -> Decimal:
    """Coerce int/str/Decimal (or None) to a cent-quantized Decimal."""
    if value is None:
        return ZERO
    if isinstance(value, float):
        # Go through str so 0.1 stays 0.1 instead of its binary expansion
        value = str(value)
    return Decimal(value).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def money_sum(values: Iterable) -> Decimal:
    total = ZERO
    for value in values:
        total += money(value)
    return total.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def is_balanced(discrepancy: Decimal, tolerance: Optional[Decimal] = None) -> bool:
    """Presentation helper: small differences read as balanced."""
    limit = settings.balance_tolerance if tolerance is None else tolerance
    return abs(money(discrepancy)) < Decimal(limit)
