"""DTO utilities for service layer.

Provides standardized conversion functions for data transfer objects, so
money and quantity values are parsed once into Decimal and serialized
consistently as strings for JSON.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

Number = Union[Decimal, float, int, str]


def to_decimal(value: Optional[Number], field: str = "value") -> Optional[Decimal]:
    """
    Convert a number-like value to Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1") rather than its
    binary expansion.

    Args:
        value: Decimal, int, float, numeric string, or None
        field: Field name used in the error message

    Returns:
        Decimal, or None when value is None

    Raises:
        ValueError: If the value is not a finite number

    Examples:
        >>> to_decimal("30")
        Decimal('30')
        >>> to_decimal(0.1)
        Decimal('0.1')
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"{field}: expected a number, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValueError(f"{field}: expected a number, got {value!r}")
    if not result.is_finite():
        raise ValueError(f"{field}: expected a finite number, got {value!r}")
    return result


def cost_to_string(value: Optional[Number]) -> str:
    """
    Convert a cost value to a 2-decimal string format.

    This is the display format for money in CLI output and DTOs.

    Args:
        value: Cost value (Decimal, float, int, str, or None)

    Returns:
        String formatted as "12.34" (2 decimal places).
        Returns "0.00" if value is None.

    Examples:
        >>> cost_to_string(Decimal("12.345"))
        '12.35'
        >>> cost_to_string(None)
        '0.00'
    """
    if value is None:
        return "0.00"

    decimal_value = Decimal(str(value))
    rounded = decimal_value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return str(rounded)


def decimal_to_string(value: Optional[Decimal]) -> Optional[str]:
    """Exact string form of a Decimal for JSON documents (no re-rounding)."""
    if value is None:
        return None
    return str(value)
