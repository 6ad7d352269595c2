"""Services package - Business logic layer for Costbook.

This package contains all service modules that provide business logic
and database operations for the application.

Architecture:
- Services: Stateless functions that take an explicit Database handle
- Transactions: Reads use Database.session_scope(); writes run as retryable
  units of work via Database.run_in_transaction()
- Exceptions: Consistent error handling via ServiceError hierarchy
- Validation: Input validation before database operations

Service Modules:
- ingredient_service: Ingredient catalog and price version ledger
- menu_item_service: Menu item recipe composition and costing
- week_service: Weekly sales and inventory drafts
- finalization_service: Week finalization (cost snapshot + report)
- report_computation: Pure cost-of-sales arithmetic
- batch_graph: Batch ingredient reference graph

Infrastructure:
- exceptions: Custom exception classes for service layer errors
- database: Database handle, session scopes and retry policy
- unit_converter: Unit conversion utilities
- logging_utils: Structured operation logging
"""

from . import (
    batch_graph,
    database,
    finalization_service,
    ingredient_service,
    menu_item_service,
    report_computation,
    unit_converter,
    week_service,
)
from .database import Database
from .exceptions import (
    ConflictError,
    DatabaseError,
    NotFoundError,
    ServiceError,
    TransientError,
    ValidationError,
)

__all__ = [
    "batch_graph",
    "database",
    "finalization_service",
    "ingredient_service",
    "menu_item_service",
    "report_computation",
    "unit_converter",
    "week_service",
    "Database",
    "ServiceError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "TransientError",
    "DatabaseError",
]
