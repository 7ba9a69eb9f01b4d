from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

TWO_PLACES = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Normalize DB/aggregate results (None, int, float, Decimal) to Decimal."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def as_number(value: Any) -> Optional[float | int]:
    """JSON representation of an amount: int when whole, float otherwise."""
    if value is None:
        return None
    dec = to_decimal(value)
    if dec == dec.to_integral_value():
        return int(dec)
    return float(dec)


def format_rupiah(value: Any) -> str:
    """Rp 1.234.567 (Indonesian thousands separator, no decimals)."""
    dec = to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return "Rp " + f"{int(dec):,}".replace(",", ".")
