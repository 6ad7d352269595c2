"""Service layer exception classes for Costbook.

This module defines all custom exceptions used by the service layer to provide
consistent error handling across the application.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError                 (400, never retried)
    │   ├── NoInventoryDataError
    │   └── CyclicBatchRecipeError
    ├── NotFoundError                   (404)
    │   ├── IngredientNotFound
    │   ├── MenuItemNotFound
    │   └── WeekNotFound
    ├── ConflictError                   (409, terminal, never retried)
    │   ├── IngredientAlreadyExists
    │   ├── IngredientInUse
    │   ├── WeekAlreadyExists
    │   ├── WeekAlreadyFinalizedError
    │   └── WeekNotDraftError
    ├── TransientError                  (503, retries exhausted; caller may retry)
    └── DatabaseError                   (500)

Each class carries an ``http_status_code`` so an outer API layer can map
errors without inspecting messages.
"""

from typing import Iterable, List, Optional


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions should inherit from this class.
    """

    http_status_code = 500

    def __init__(self, message: str = "", **context):
        self.context = context
        super().__init__(message)


class ValidationError(ServiceError):
    """Raised when input fails validation.

    Args:
        errors: One message or a list of messages

    Example:
        >>> raise ValidationError(["units_per_case: Value must be greater than zero"])
        ValidationError: Validation failed: units_per_case: Value must be greater than zero
    """

    http_status_code = 400

    def __init__(self, errors, **context):
        if isinstance(errors, str):
            errors = [errors]
        self.errors: List[str] = list(errors)
        super().__init__(f"Validation failed: {'; '.join(self.errors)}", **context)


class NoInventoryDataError(ValidationError):
    """Raised when finalizing a week that has no inventory entries."""

    def __init__(self, week_id: str):
        self.week_id = week_id
        super().__init__(
            [f"Cannot finalize week {week_id} without inventory entries"], week_id=week_id
        )


class CyclicBatchRecipeError(ValidationError):
    """Raised when batch recipe lines would create a reference cycle.

    Args:
        cycle: Ingredient ids along the cycle, first id repeated at the end

    Example:
        >>> raise CyclicBatchRecipeError(["salsa", "pico", "salsa"])
        CyclicBatchRecipeError: Validation failed: Batch recipe cycle detected: salsa -> pico -> salsa
    """

    def __init__(self, cycle: Iterable[str]):
        self.cycle = list(cycle)
        super().__init__(
            [f"Batch recipe cycle detected: {' -> '.join(self.cycle)}"], cycle=self.cycle
        )


class NotFoundError(ServiceError):
    """Raised when a requested record does not exist."""

    http_status_code = 404


class IngredientNotFound(NotFoundError):
    """Raised when an ingredient cannot be found by id.

    Example:
        >>> raise IngredientNotFound("cheese")
        IngredientNotFound: Ingredient 'cheese' not found
    """

    def __init__(self, ingredient_id: str):
        self.ingredient_id = ingredient_id
        super().__init__(f"Ingredient '{ingredient_id}' not found", ingredient_id=ingredient_id)


class MenuItemNotFound(NotFoundError):
    """Raised when a menu item cannot be found by id."""

    def __init__(self, menu_item_id: str):
        self.menu_item_id = menu_item_id
        super().__init__(f"Menu item '{menu_item_id}' not found", menu_item_id=menu_item_id)


class WeekNotFound(NotFoundError):
    """Raised when a week does not exist."""

    def __init__(self, week_id: str):
        self.week_id = week_id
        super().__init__(f"Week {week_id} does not exist", week_id=week_id)


class ConflictError(ServiceError):
    """Raised when an operation conflicts with the current state of a record."""

    http_status_code = 409


class IngredientAlreadyExists(ConflictError):
    """Raised when creating an ingredient whose id is taken."""

    def __init__(self, ingredient_id: str):
        self.ingredient_id = ingredient_id
        super().__init__(f"Ingredient '{ingredient_id}' already exists", ingredient_id=ingredient_id)


class IngredientInUse(ConflictError):
    """Raised when deleting an ingredient that recipes still reference.

    Args:
        ingredient_id: The ingredient being deleted
        dependencies: Dictionary of dependency counts {entity_type: count}

    Example:
        >>> raise IngredientInUse("cheese", {"menu_recipes": 2, "batch_recipes": 1})
        IngredientInUse: Cannot delete ingredient 'cheese': used in 2 menu_recipes, 1 batch_recipes
    """

    def __init__(self, ingredient_id: str, dependencies: dict):
        self.ingredient_id = ingredient_id
        self.dependencies = dependencies

        details = ", ".join(
            f"{count} {entity_type}" for entity_type, count in dependencies.items() if count > 0
        )

        super().__init__(
            f"Cannot delete ingredient '{ingredient_id}': used in {details}",
            ingredient_id=ingredient_id,
        )


class WeekAlreadyExists(ConflictError):
    """Raised when creating a week whose id is taken."""

    def __init__(self, week_id: str):
        self.week_id = week_id
        super().__init__(f"Week {week_id} already exists", week_id=week_id)


class WeekAlreadyFinalizedError(ConflictError):
    """Raised when finalizing a week that is already finalized."""

    def __init__(self, week_id: str):
        self.week_id = week_id
        super().__init__(f"Week {week_id} is already finalized", week_id=week_id)


class WeekNotDraftError(ConflictError):
    """Raised when writing sales or inventory to a week that is no longer a draft."""

    def __init__(self, week_id: str, status: str):
        self.week_id = week_id
        self.status = status
        super().__init__(
            f"Week {week_id} is {status}; only draft weeks accept changes",
            week_id=week_id,
            status=status,
        )


class TransientError(ServiceError):
    """Raised when a unit of work kept losing optimistic-concurrency races.

    The operation had no effect and is safe for the caller to retry.
    """

    http_status_code = 503

    def __init__(self, operation: str, attempts: int, original_error: Optional[Exception] = None):
        self.operation = operation
        self.attempts = attempts
        self.original_error = original_error
        super().__init__(
            f"{operation} aborted after {attempts} attempts due to concurrent changes; "
            "please retry",
            operation=operation,
            attempts=attempts,
        )


class DatabaseError(ServiceError):
    """Raised when a database operation fails unexpectedly."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")
