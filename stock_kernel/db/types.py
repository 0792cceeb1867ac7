"""
Module: stock_kernel.db.types
Responsibility: Annotated type aliases and rounding helpers for quantity and
    price columns.  Centralizes precision so that every model and service
    uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    CRITICAL: No floats anywhere in the stock kernel.  Quantities, conversion
    factors and prices are Decimal end to end.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated

from sqlalchemy import BigInteger, String

from stock_kernel.db.base import ExactDecimal

# Stock quantity in base units
Quantity = Annotated[Decimal, ExactDecimal()]

# Unit or line price
Money = Annotated[Decimal, ExactDecimal()]

# Monotonic sequence number for ordering
Sequence = Annotated[int, BigInteger]

# Short identifier strings
ShortCode = Annotated[str, String(50)]

# Long text for notes
LongText = Annotated[str, String(4000)]


QUANTITY_DECIMAL_PLACES = 3
MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Coerce an operator-supplied number to Decimal.

    Floats go through ``str`` so that ``0.1`` becomes ``Decimal("0.1")``.

    Raises:
        ValueError: If value is not a finite number.
    """
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation as exc:
            raise ValueError(f"Not a number: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def round_quantity(
    value: Decimal,
    decimal_places: int = QUANTITY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a quantity to the configured fixed-point precision.

    This is the only sanctioned rounding function for quantities.
    """
    exponent = Decimal(1).scaleb(-decimal_places)
    return value.quantize(exponent, rounding=rounding)


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """Round a monetary value to specified decimal places."""
    exponent = Decimal(1).scaleb(-decimal_places)
    return value.quantize(exponent, rounding=rounding)
