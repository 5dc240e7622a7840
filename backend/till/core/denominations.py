"""
Cash drawer denominations (BRL notes and coins) and the physical count.
"""
from decimal import Decimal
from typing import Dict, Mapping

from till.core.errors import InvalidAmount
from till.core.money import ZERO, money


DENOMINATIONS: Dict[str, Decimal] = {
    "100": Decimal("100.00"),
    "50": Decimal("50.00"),
    "20": Decimal("20.00"),
    "10": Decimal("10.00"),
    "5": Decimal("5.00"),
    "2": Decimal("2.00"),
    "1": Decimal("1.00"),
    "0.50": Decimal("0.50"),
    "0.25": Decimal("0.25"),
    "0.10": Decimal("0.10"),
    "0.05": Decimal("0.05"),
}


def empty_count() -> Dict[str, int]:
    return {key: 0 for key in DENOMINATIONS}


def normalize_count(counts: Mapping[str, int] | None) -> Dict[str, int]:
    """Validate a denomination count and fill the missing keys with zero."""
    normalized = empty_count()
    for key, count in (counts or {}).items():
        if key not in DENOMINATIONS:
            raise InvalidAmount(f"Unknown denomination: {key}")
        if count is None:
            continue
        if int(count) != count or count < 0:
            raise InvalidAmount(f"Count for {key} must be a non-negative integer")
        normalized[key] = int(count)
    return normalized


def physical_cash(counts: Mapping[str, int] | None) -> Decimal:
    normalized = normalize_count(counts)
    total = ZERO
    for key, count in normalized.items():
        total += DENOMINATIONS[key] * count
    return money(total)
