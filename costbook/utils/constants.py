"""
Constants and enumerations for the Costbook weekly costing application.

This module defines all system-wide constants including:
- Unit types (weight, volume, count)
- Ingredient categories
- Week lifecycle states and sales days
- Application metadata
"""

from decimal import Decimal
from typing import List

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "Costbook"
APP_VERSION = "0.1.0"
DATABASE_VERSION = "1.0"

# ============================================================================
# Unit Types
# ============================================================================

# Weight units
WEIGHT_UNITS: List[str] = [
    "oz",  # Ounce
    "lb",  # Pound
    "g",  # Gram
    "kg",  # Kilogram
]

# US customary volume units
US_VOLUME_UNITS: List[str] = [
    "tsp",  # Teaspoon
    "tbsp",  # Tablespoon
    "fl oz",  # Fluid ounce
    "cup",  # Cup
    "pt",  # Pint
    "qt",  # Quart
    "gal",  # Gallon
]

# Metric volume units
METRIC_VOLUME_UNITS: List[str] = [
    "ml",  # Milliliter
    "l",  # Liter
]

# Count/discrete units
COUNT_UNITS: List[str] = [
    "each",
    "count",
    "case",
    "piece",
    "dozen",
]

# All valid units combined
ALL_UNITS: List[str] = WEIGHT_UNITS + US_VOLUME_UNITS + METRIC_VOLUME_UNITS + COUNT_UNITS

# ============================================================================
# Weekly Cycle
# ============================================================================

SALES_DAYS: List[str] = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]

INVENTORY_FIELDS: List[str] = ["begin", "received", "end"]

# ============================================================================
# Precision
# ============================================================================

UNIT_COST_QUANTUM = Decimal("0.0001")
COST_SHARE_QUANTUM = Decimal("0.0001")
PERCENT_QUANTUM = Decimal("0.01")

# ============================================================================
# Validation Limits
# ============================================================================

MAX_NAME_LENGTH = 200
MAX_UNIT_LENGTH = 50
MAX_ID_LENGTH = 60
MIN_ID_LENGTH = 4

# ============================================================================
# Database / Transactions
# ============================================================================

DATABASE_FILENAME = "costbook.db"

DEFAULT_TRANSACTION_MAX_ATTEMPTS = 5
DEFAULT_TRANSACTION_BACKOFF_SECONDS = 0.05

# Value recorded when a version pointer is absent
UNSPECIFIED_VERSION_ID = "unspecified"

# ============================================================================
# Error Messages
# ============================================================================

ERROR_REQUIRED_FIELD = "This field is required"
ERROR_INVALID_POSITIVE = "Value must be greater than zero"
ERROR_INVALID_NON_NEGATIVE = "Value must be zero or greater"
ERROR_INVALID_CATEGORY = "Invalid category"
ERROR_INVALID_NUMBER = "Must be a valid number"
