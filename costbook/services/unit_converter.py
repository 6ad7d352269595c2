"""
Unit conversion for recipe costing.

This module provides:
- Standard unit conversions (weight, US volume, metric volume, count)
- Conversion factors between an ingredient's inventory and recipe units
- Unit type detection and compatibility checks

Conversion Strategy:
- Weight units convert through grams (base unit)
- US volume units convert through teaspoons (base unit)
- Metric volume units convert through milliliters (base unit)
- Count units convert through single items

US and metric volume are kept apart: recipes measured in cups are never
silently costed against an ingredient stocked in liters.

All arithmetic is Decimal so 1 lb is exactly 16 oz.
"""

from decimal import Decimal
from typing import Dict, Optional, Tuple

# ============================================================================
# Standard Conversion Tables
# ============================================================================

# Weight conversions to grams (base unit)
WEIGHT_TO_GRAMS: Dict[str, Decimal] = {
    "g": Decimal("1"),
    "kg": Decimal("1000"),
    "oz": Decimal("28.349523125"),
    "lb": Decimal("453.59237"),
}

# US volume conversions to teaspoons (base unit)
US_VOLUME_TO_TSP: Dict[str, Decimal] = {
    "tsp": Decimal("1"),
    "tbsp": Decimal("3"),
    "fl oz": Decimal("6"),
    "cup": Decimal("48"),
    "pt": Decimal("96"),
    "qt": Decimal("192"),
    "gal": Decimal("768"),
}

# Metric volume conversions to milliliters (base unit)
METRIC_VOLUME_TO_ML: Dict[str, Decimal] = {
    "ml": Decimal("1"),
    "l": Decimal("1000"),
}

# Count conversions to individual items (base unit)
COUNT_TO_ITEMS: Dict[str, Decimal] = {
    "each": Decimal("1"),
    "count": Decimal("1"),
    "case": Decimal("1"),
    "piece": Decimal("1"),
    "dozen": Decimal("12"),
}

_TABLES = (
    ("weight", WEIGHT_TO_GRAMS),
    ("us_volume", US_VOLUME_TO_TSP),
    ("metric_volume", METRIC_VOLUME_TO_ML),
    ("count", COUNT_TO_ITEMS),
)


def _normalize(unit: Optional[str]) -> str:
    return (unit or "").strip().lower()


# ============================================================================
# Unit Type Detection
# ============================================================================


def get_conversion_table(unit: str) -> Optional[Dict[str, Decimal]]:
    """
    Get the appropriate conversion table for a unit.

    Args:
        unit: Unit string (e.g., "oz", "cup", "dozen")

    Returns:
        Conversion table dict, or None if unit not found
    """
    unit_lower = _normalize(unit)
    for _, table in _TABLES:
        if unit_lower in table:
            return table
    return None


def get_unit_type(unit: str) -> str:
    """
    Determine the type of a unit.

    Args:
        unit: Unit string

    Returns:
        Unit type: "weight", "us_volume", "metric_volume", "count", or "unknown"
    """
    unit_lower = _normalize(unit)
    for unit_type, table in _TABLES:
        if unit_lower in table:
            return unit_type
    return "unknown"


def units_compatible(unit1: str, unit2: str) -> bool:
    """
    Check if two units are of the same type and can be converted.

    Args:
        unit1: First unit
        unit2: Second unit

    Returns:
        True if units are compatible for conversion
    """
    type1 = get_unit_type(unit1)
    type2 = get_unit_type(unit2)

    if type1 == "unknown" or type2 == "unknown":
        return False

    return type1 == type2


# ============================================================================
# Standard Unit Conversions
# ============================================================================


def get_conversion_factor(from_unit: str, to_unit: str) -> Optional[Decimal]:
    """
    How many ``to_unit`` are in one ``from_unit``.

    Args:
        from_unit: Source unit (e.g., "lb")
        to_unit: Target unit (e.g., "oz")

    Returns:
        Decimal factor, or None when either unit is unknown or the units
        measure different things

    Examples:
        >>> get_conversion_factor("lb", "oz")
        Decimal('16')
        >>> get_conversion_factor("cup", "ml") is None
        True
    """
    from_lower = _normalize(from_unit)
    to_lower = _normalize(to_unit)

    if from_lower and from_lower == to_lower:
        return Decimal("1")

    table = get_conversion_table(from_lower)
    if table is None or to_lower not in table:
        return None

    factor = table[from_lower] / table[to_lower]
    # Drop trailing zeros left by exact divisions (16.000... -> 16)
    if factor == factor.to_integral_value():
        return factor.quantize(Decimal("1"))
    return factor.normalize()


def convert_standard_units(
    value: Decimal, from_unit: str, to_unit: str
) -> Tuple[bool, Decimal, str]:
    """
    Convert between standard units of the same type.

    Args:
        value: Quantity to convert
        from_unit: Source unit (e.g., "lb")
        to_unit: Target unit (e.g., "oz")

    Returns:
        Tuple of (success, converted_value, error_message)
        - success: True if conversion successful
        - converted_value: Result (0 if failed)
        - error_message: Error description (empty string if successful)
    """
    value = Decimal(str(value))
    if value < 0:
        return False, Decimal("0"), "Value cannot be negative"

    if get_conversion_table(from_unit) is None:
        return False, Decimal("0"), f"Unknown unit: {from_unit}"

    factor = get_conversion_factor(from_unit, to_unit)
    if factor is None:
        return (
            False,
            Decimal("0"),
            f"Cannot convert {from_unit} to {to_unit}: incompatible unit types",
        )

    return True, value * factor, ""


def format_conversion(value: Decimal, from_unit: str, to_unit: str, precision: int = 2) -> str:
    """
    Format a unit conversion for display.

    Returns:
        Formatted string (e.g., "1 lb = 16.00 oz")
        Returns error message if conversion fails
    """
    success, converted, error = convert_standard_units(value, from_unit, to_unit)

    if not success:
        return f"Error: {error}"

    return f"{value} {from_unit} = {converted:.{precision}f} {to_unit}"
