"""Fixed-point money helpers.

Amounts are carried as integer paise. Every percentage application rounds
once, half-up, to the nearest paisa; sums are plain integer additions.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

Number = Union[int, str, Decimal, float]

PAISE_PER_RUPEE = 100
TWO_PLACES = Decimal("0.01")


def to_decimal(value: Optional[Number]) -> Decimal:
    if value is None:
        return Decimal(0)
    if isinstance(value, Decimal):
        return value
    # str() first so floats such as 0.1 keep their shortest repr
    return Decimal(str(value))


def to_paise(rupees: Optional[Number]) -> int:
    """Convert a rupee amount to integer paise, rounding half-up."""
    amount = to_decimal(rupees) * PAISE_PER_RUPEE
    return int(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_paise(paise: Optional[int]) -> Decimal:
    """Convert integer paise back to a two-place rupee Decimal."""
    if paise is None:
        paise = 0
    return (Decimal(paise) / PAISE_PER_RUPEE).quantize(TWO_PLACES)


def percent_of(paise: int, rate: Number) -> int:
    """Return ``rate`` percent of ``paise``, rounded half-up to a whole paisa."""
    share = Decimal(paise) * to_decimal(rate) / 100
    return int(share.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def split_in_half(paise: int) -> tuple:
    """Split an amount into two halves that always add back to the whole.

    The odd paisa, if any, goes to the second half.
    """
    first = paise // 2
    return first, paise - first


def rupee_property(paise_attr: str) -> property:
    """Read-only rupee view of an integer paise column, for response schemas."""
    return property(lambda self: from_paise(getattr(self, paise_attr)))
