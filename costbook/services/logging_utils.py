"""Service layer logging utilities.

Provides structured logging functions for service operations, enabling
consistent log format and context across catalog, weekly cycle and
finalization operations.

Usage:
    from costbook.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    # Log successful operation
    log_operation(
        logger,
        operation="finalize_week",
        outcome="success",
        week_id="2024-W05",
        total_cost_of_sales="36.0000",
    )

    # Log a rejected operation
    log_operation(
        logger,
        operation="finalize_week",
        outcome="already_finalized",
        level=logging.WARNING,
        week_id="2024-W05",
    )
"""

import logging
from typing import Any

LOGGER_PREFIX = "costbook.services"


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger configured for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger instance with the 'costbook.services' prefix.

    Example:
        >>> logger = get_service_logger(__name__)
        >>> logger.name
        'costbook.services.finalization_service'
    """
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    The context is passed via the 'extra' parameter for structured logging,
    so handlers can index on operation, outcome and entity ids.

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "finalize_week", "update_ingredient")
        outcome: Outcome description (e.g., "success", "retry", "not_found")
        level: Log level (default: INFO). Use DEBUG for verbose/frequent logs.
        **context: Additional context fields (entity IDs, error details, etc.)
            Common fields:
            - week_id: Week being processed
            - ingredient_id: Ingredient being changed
            - version_id: Version opened by a price change
            - attempt: Attempt number of a retried unit of work
            - error: Error message if outcome is a failure
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    logger.log(level, f"{operation}: {outcome}", extra=extra)
