"""
Money helpers. Amounts are `Decimal` in the API and integer cents in storage.
"""

from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Union

CENT = Decimal("0.01")

Amount = Union[Decimal, int, float, str]


def to_decimal(value: Amount) -> Decimal:
    """Convert user input to Decimal. Floats go through str() to avoid binary noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError("Booleans are not amounts")
    try:
        if isinstance(value, float):
            return Decimal(str(value))
        return Decimal(value)
    except InvalidOperation:
        raise ValueError(f"Not a number: {value!r}")


def has_cent_precision(value: Decimal) -> bool:
    return value == value.quantize(CENT)


def quantize(value: Amount) -> Decimal:
    """Truncate to the cent. Payouts never round up in the player's favour."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_DOWN)


def to_cents(value: Amount) -> int:
    return int(quantize(value) * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)
