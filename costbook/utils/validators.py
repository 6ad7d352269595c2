"""
Input validation functions for the Costbook application.

This module provides validation functions for all user inputs including:
- Numeric validation (positive, non-negative)
- String validation (length, required fields)
- Category validation
- Record-level validation for ingredients, recipe lines and menu items

Validators return ``(is_valid, error)`` or ``(is_valid, errors)`` tuples; the
service layer turns failures into ValidationError.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional, Tuple

from costbook.models.enums import IngredientCategory

from .constants import (
    ERROR_INVALID_CATEGORY,
    ERROR_INVALID_NON_NEGATIVE,
    ERROR_INVALID_NUMBER,
    ERROR_INVALID_POSITIVE,
    ERROR_REQUIRED_FIELD,
    MAX_NAME_LENGTH,
    MAX_UNIT_LENGTH,
)


def _as_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def validate_required_string(value: Optional[str], field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a string field is not empty.

    Args:
        value: The string value to validate
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return False, f"{field_name}: {ERROR_REQUIRED_FIELD}"
    return True, ""


def validate_string_length(
    value: str, max_length: int, field_name: str = "Field"
) -> Tuple[bool, str]:
    """
    Validate that a string doesn't exceed maximum length.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if value and len(value) > max_length:
        return False, f"{field_name}: Must be {max_length} characters or less"
    return True, ""


def validate_positive_number(value: Any, field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a value is a positive number (> 0).

    Returns:
        Tuple of (is_valid, error_message)
    """
    number = _as_decimal(value)
    if number is None:
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"
    if number <= 0:
        return False, f"{field_name}: {ERROR_INVALID_POSITIVE}"
    return True, ""


def validate_non_negative_number(value: Any, field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a value is a non-negative number (>= 0).

    Returns:
        Tuple of (is_valid, error_message)
    """
    number = _as_decimal(value)
    if number is None:
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"
    if number < 0:
        return False, f"{field_name}: {ERROR_INVALID_NON_NEGATIVE}"
    return True, ""


def validate_ingredient_category(category: str, field_name: str = "Category") -> Tuple[bool, str]:
    """
    Validate that a category is one of the fixed ingredient categories.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not category:
        return False, f"{field_name}: {ERROR_REQUIRED_FIELD}"

    valid_categories = IngredientCategory.values()
    if category not in valid_categories:
        return False, f"{field_name}: {ERROR_INVALID_CATEGORY}. Valid: {', '.join(valid_categories)}"

    return True, ""


def validate_recipe_line_data(line: dict, label: str = "Recipe line") -> Tuple[bool, list]:
    """
    Validate one {ingredient_id, quantity, unit} line.

    Args:
        line: Dictionary containing line fields
        label: Prefix for error messages (e.g., "Line 2")

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []

    is_valid, error = validate_required_string(line.get("ingredient_id"), f"{label} ingredient")
    if not is_valid:
        errors.append(error)

    is_valid, error = validate_non_negative_number(line.get("quantity"), f"{label} quantity")
    if not is_valid:
        errors.append(error)

    unit = line.get("unit")
    is_valid, error = validate_required_string(unit, f"{label} unit")
    if not is_valid:
        errors.append(error)
    else:
        is_valid, error = validate_string_length(unit, MAX_UNIT_LENGTH, f"{label} unit")
        if not is_valid:
            errors.append(error)

    return len(errors) == 0, errors


def validate_ingredient_data(data: dict) -> Tuple[bool, list]:  # noqa: C901
    """
    Validate all fields for an ingredient.

    Args:
        data: Dictionary containing ingredient fields

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors: List[str] = []

    name = data.get("name")
    is_valid, error = validate_required_string(name, "Name")
    if not is_valid:
        errors.append(error)
    else:
        is_valid, error = validate_string_length(name, MAX_NAME_LENGTH, "Name")
        if not is_valid:
            errors.append(error)

    is_valid, error = validate_required_string(data.get("inventory_unit"), "Inventory unit")
    if not is_valid:
        errors.append(error)

    is_valid, error = validate_positive_number(data.get("units_per_case"), "Units per case")
    if not is_valid:
        errors.append(error)

    is_valid, error = validate_non_negative_number(data.get("case_price", 0), "Case price")
    if not is_valid:
        errors.append(error)

    if data.get("category") is not None:
        is_valid, error = validate_ingredient_category(data.get("category"), "Category")
        if not is_valid:
            errors.append(error)

    if data.get("conversion_factor") is not None:
        is_valid, error = validate_positive_number(data.get("conversion_factor"), "Conversion factor")
        if not is_valid:
            errors.append(error)

    # Batch ingredients: yield is optional while the recipe is being built,
    # but must be positive when given
    if data.get("is_batch"):
        if data.get("yield_quantity") is not None:
            is_valid, error = validate_positive_number(data.get("yield_quantity"), "Yield")
            if not is_valid:
                errors.append(error)
        for index, line in enumerate(data.get("recipe_lines") or [], start=1):
            _, line_errors = validate_recipe_line_data(line, f"Line {index}")
            errors.extend(line_errors)

    return len(errors) == 0, errors


def validate_menu_item_data(data: dict) -> Tuple[bool, list]:
    """
    Validate menu item fields.

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []

    name = data.get("name")
    is_valid, error = validate_required_string(name, "Name")
    if not is_valid:
        errors.append(error)
    else:
        is_valid, error = validate_string_length(name, MAX_NAME_LENGTH, "Name")
        if not is_valid:
            errors.append(error)

    if data.get("selling_price") is not None:
        is_valid, error = validate_non_negative_number(data.get("selling_price"), "Selling price")
        if not is_valid:
            errors.append(error)

    return len(errors) == 0, errors


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """
    Strip a string; empty strings become None.

    Returns:
        Sanitized string or None
    """
    if value is None:
        return None
    value = value.strip()
    return value or None
