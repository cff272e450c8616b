"""
Module: cellar_kernel.db.types
Responsibility: Annotated column types and the rounding helpers shared by
    models and services, so that every volume and percentage in the engine
    is stored and computed with identical precision.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/ and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Volumes: Numeric(18, 3), rounded half-up to VOLUME_DECIMAL_PLACES.
    - Percentages: Numeric(9, 4), rounded half-up to PERCENTAGE_DECIMAL_PLACES.
    - No floats.  Conversions from request input go through Decimal(str(x)).
"""

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Annotated

from sqlalchemy import Numeric, String

# Liquid volume (litres or hectolitres, unit is a facility convention)
Volume = Annotated[Decimal, Numeric(18, 3)]

# Share of a lot contributed by one batch, 0-100
Percentage = Annotated[Decimal, Numeric(9, 4)]

# Human-readable codes (lot codes, transfer codes, batch numbers)
ShortCode = Annotated[str, String(64)]

# Free-text notes and descriptions
LongText = Annotated[str, String(4000)]

VOLUME_DECIMAL_PLACES = 3
PERCENTAGE_DECIMAL_PLACES = 4
DEFAULT_ROUNDING = ROUND_HALF_UP


def _quantum(decimal_places: int) -> Decimal:
    return Decimal(1).scaleb(-decimal_places)


def to_decimal(value) -> Decimal:
    """
    Convert request input (int, str, float, Decimal) to Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1").

    Raises:
        ValueError: if the value is not numeric or is not finite.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a numeric value: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except ArithmeticError as exc:
            raise ValueError(f"Not a numeric value: {value!r}") from exc
    else:
        raise ValueError(f"Not a numeric value: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Not a finite value: {value!r}")
    return result


def round_volume(
    value: Decimal,
    decimal_places: int = VOLUME_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """Round a volume to the stored precision."""
    return value.quantize(_quantum(decimal_places), rounding=rounding)


def round_percentage(
    value: Decimal,
    decimal_places: int = PERCENTAGE_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """Round a percentage to the stored precision."""
    return value.quantize(_quantum(decimal_places), rounding=rounding)


def enum_value(value):
    """Plain value of a str-Enum member; other values pass through."""
    return value.value if isinstance(value, Enum) else value
