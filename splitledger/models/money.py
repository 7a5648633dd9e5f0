"""
Fixed-point money helpers.

All arithmetic inside the engine happens on integers counting minor units
(paise, cents). Decimal values only exist at the model boundary.
"""

from decimal import Decimal
from typing import Union

MINOR_UNIT_EXPONENT = 2


def to_minor_units(amount: Union[Decimal, int, str], exponent: int = MINOR_UNIT_EXPONENT) -> int:
    """
    Convert a major-unit amount to an integer count of minor units.

    Raises ValueError if the amount carries more precision than the
    currency allows. Amounts are never silently rounded.
    """
    value = Decimal(str(amount)) if not isinstance(amount, Decimal) else amount
    scaled = value.scaleb(exponent)
    if scaled != scaled.to_integral_value():
        raise ValueError(
            f"Amount {value} has more than {exponent} decimal places"
        )
    return int(scaled)


def from_minor_units(minor: int, exponent: int = MINOR_UNIT_EXPONENT) -> Decimal:
    """Convert integer minor units back to a Decimal in major units."""
    return Decimal(minor).scaleb(-exponent)


def format_amount(amount: Decimal, exponent: int = MINOR_UNIT_EXPONENT) -> str:
    """Render an amount with exactly the currency's number of decimals."""
    return f"{amount:.{exponent}f}"
