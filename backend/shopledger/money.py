"""
Decimal helpers for money (2 places) and lengths/stock (3 places).

All computed values go through q2/q3 before they are compared, stored or
returned so ledger sums stay exactly reproducible. Rounding is half-up.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

CENT = Decimal("0.01")
MILLI = Decimal("0.001")
ZERO = Decimal("0")

# Slack tolerated when checking that an allocation consumed the whole amount
ALLOCATION_TOLERANCE = Decimal("0.01")


def to_decimal(value: Any, default: Decimal | None = ZERO) -> Decimal | None:
    """Coerce ints, floats, strings and Decimals to Decimal; None -> default."""
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, float):
        # repr() keeps the shortest round-tripping form (0.1 -> "0.1")
        return Decimal(repr(value))
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"not a number: {value!r}") from exc


def q2(value: Any) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def q3(value: Any) -> Decimal:
    return to_decimal(value).quantize(MILLI, rounding=ROUND_HALF_UP)


def fraction_digits(value: Decimal) -> int:
    exponent = value.normalize().as_tuple().exponent
    return -exponent if isinstance(exponent, int) and exponent < 0 else 0


def as_float(value: Decimal | None) -> float | None:
    """JSON presentation only; never feed the result back into arithmetic."""
    if value is None:
        return None
    return float(value)
