"""
Enumerations for the catalog and the weekly cycle.

This module contains enums used across models and services:
- WeekStatus: Lifecycle state of a week
- IngredientCategory: Reporting category of an ingredient
"""

from enum import Enum


class WeekStatus(str, Enum):
    """
    Week lifecycle status.

    Values:
        DRAFT: Sales and inventory may still be edited
        FINALIZED: Report and cost snapshot are frozen; terminal state
    """

    DRAFT = "draft"
    FINALIZED = "finalized"


class IngredientCategory(str, Enum):
    """
    Ingredient reporting categories.

    Values:
        FOOD: Food cost
        PAPER: Packaging and disposables
        OTHER: Anything else
    """

    FOOD = "food"
    PAPER = "paper"
    OTHER = "other"

    @classmethod
    def values(cls):
        """All category values as plain strings."""
        return [member.value for member in cls]
