"""Tests for service exceptions and operation logging."""

import logging

from costbook.services.exceptions import (
    ConflictError,
    CyclicBatchRecipeError,
    DatabaseError,
    IngredientInUse,
    IngredientNotFound,
    NoInventoryDataError,
    NotFoundError,
    TransientError,
    ValidationError,
    WeekAlreadyFinalizedError,
    WeekNotDraftError,
)
from costbook.services.logging_utils import get_service_logger, log_operation


class TestExceptions:
    def test_http_status_codes(self):
        assert ValidationError("bad").http_status_code == 400
        assert IngredientNotFound("cheese").http_status_code == 404
        assert WeekAlreadyFinalizedError("2024-W05").http_status_code == 409
        assert TransientError("finalize_week", 5).http_status_code == 503
        assert DatabaseError("boom").http_status_code == 500

    def test_hierarchy(self):
        assert isinstance(NoInventoryDataError("2024-W05"), ValidationError)
        assert isinstance(CyclicBatchRecipeError(["a", "a"]), ValidationError)
        assert isinstance(WeekNotDraftError("2024-W05", "finalized"), ConflictError)
        assert isinstance(IngredientNotFound("cheese"), NotFoundError)

    def test_validation_error_messages(self):
        error = ValidationError(["Name: This field is required", "Yield: bad"])
        assert error.errors == ["Name: This field is required", "Yield: bad"]
        assert str(error) == "Validation failed: Name: This field is required; Yield: bad"

    def test_cycle_message(self):
        error = CyclicBatchRecipeError(["salsa", "pico", "salsa"])
        assert "salsa -> pico -> salsa" in str(error)
        assert error.context["cycle"] == ["salsa", "pico", "salsa"]

    def test_ingredient_in_use_lists_dependencies(self):
        error = IngredientInUse("cheese", {"menu_recipes": 2, "batch_recipes": 0})
        assert str(error) == "Cannot delete ingredient 'cheese': used in 2 menu_recipes"

    def test_transient_error_keeps_cause(self):
        cause = RuntimeError("stale")
        error = TransientError("update_ingredient", 3, cause)
        assert error.attempts == 3
        assert error.original_error is cause
        assert "update_ingredient aborted after 3 attempts" in str(error)


class TestLogging:
    def test_service_logger_name(self):
        logger = get_service_logger("costbook.services.finalization_service")
        assert logger.name == "costbook.services.finalization_service"

    def test_log_operation_structured_context(self, caplog):
        logger = get_service_logger(__name__)

        with caplog.at_level(logging.INFO, logger=logger.name):
            log_operation(logger, "finalize_week", "success", week_id="2024-W05")

        record = caplog.records[-1]
        assert record.getMessage() == "finalize_week: success"
        assert record.operation == "finalize_week"
        assert record.outcome == "success"
        assert record.week_id == "2024-W05"

    def test_log_operation_level(self, caplog):
        logger = get_service_logger(__name__)

        with caplog.at_level(logging.WARNING, logger=logger.name):
            log_operation(logger, "finalize_week", "debug_detail", level=logging.DEBUG)
            log_operation(logger, "finalize_week", "rejected", level=logging.WARNING)

        assert [record.outcome for record in caplog.records] == ["rejected"]
