"""Presentation rounding for money values."""
from decimal import Decimal, ROUND_HALF_UP

from splitbill.config import CURRENCY_PLACES

_QUANTUM = Decimal(1).scaleb(-CURRENCY_PLACES)


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value) -> Decimal:
    return to_decimal(value).quantize(_QUANTUM, rounding=ROUND_HALF_UP)


def to_float(value) -> float:
    """Rounded to the currency minor unit, for JSON responses."""
    return float(round_money(value))
