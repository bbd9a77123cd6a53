"""
Money helpers shared by the policy and the lifecycle manager.

Amounts are Decimal throughout. Rounding is ROUND_HALF_UP to the currency's
minor unit, and equality is decided on the integer count of minor units.
Refund ceilings round down, so a refund never exceeds what was paid.
"""
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP

ZERO = Decimal("0")


def minor_unit(decimals: int) -> Decimal:
    """Smallest representable amount: 1 for VND, 0.01 for USD."""
    return Decimal(1).scaleb(-decimals)


def quantize(value: Decimal, decimals: int, rounding: str = ROUND_HALF_UP) -> Decimal:
    """Round to the currency's minor unit, half-up unless told otherwise."""
    return Decimal(value).quantize(minor_unit(decimals), rounding=rounding)


def refund_ceiling(final_price: Decimal, decimals: int) -> Decimal:
    """
    Largest refundable amount for a price, in whole minor units.

    Example:
        refund_ceiling(Decimal("999.5"), 0) → 999
    """
    return quantize(final_price, decimals, rounding=ROUND_DOWN)


def to_minor_units(value: Decimal, decimals: int) -> int:
    """
    Convert an amount to an integer number of minor units.

    Example:
        to_minor_units(Decimal("1000000"), 0) → 1000000
        to_minor_units(Decimal("12.345"), 2) → 1235
    """
    return int(quantize(value, decimals).scaleb(decimals))


def amounts_equal(left: Decimal, right: Decimal, decimals: int) -> bool:
    return to_minor_units(left, decimals) == to_minor_units(right, decimals)
