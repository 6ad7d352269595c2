"""
Database models package.

This package contains all SQLAlchemy ORM models for the application.
"""

from .base import Base, BaseModel
from .enums import IngredientCategory, WeekStatus
from .ingredient import BatchRecipeLine, Ingredient, IngredientVersion
from .menu_item import MenuItem, RecipeLine
from .week import (
    Week,
    WeekReport,
    WeeklyCostSnapshotEntry,
    WeeklyInventoryEntry,
    WeeklySales,
)

__all__ = [
    "Base",
    "BaseModel",
    # Enums
    "IngredientCategory",
    "WeekStatus",
    # Catalog
    "Ingredient",
    "IngredientVersion",
    "BatchRecipeLine",
    # Recipes
    "MenuItem",
    "RecipeLine",
    # Weekly cycle
    "Week",
    "WeeklySales",
    "WeeklyInventoryEntry",
    "WeeklyCostSnapshotEntry",
    "WeekReport",
]
