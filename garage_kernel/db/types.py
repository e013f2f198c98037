"""
Money coercion and rounding shared by the models, engines and reports.

Stored amounts are Decimal end to end.  Floats are refused at the boundary
rather than converted, because a float that reached a debt sum has already
lost the cents it was meant to carry.  Rounding applies to presentation
figures such as averages, never to stored totals.
"""

from decimal import ROUND_HALF_UP, Decimal

_CENTS = 2


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Raises:
        TypeError: ``value`` is a float.
        decimal.InvalidOperation: ``value`` is a non-numeric string.
    """
    if isinstance(value, float):
        raise TypeError(f"Monetary amounts must not be floats: {value!r}")
    return value if isinstance(value, Decimal) else Decimal(value)


def round_money(
    value: Decimal,
    decimal_places: int = _CENTS,
    rounding: str = ROUND_HALF_UP,
) -> Decimal:
    """Quantize ``value`` to ``decimal_places`` places, half-up by default."""
    return value.quantize(Decimal(1).scaleb(-decimal_places), rounding=rounding)
