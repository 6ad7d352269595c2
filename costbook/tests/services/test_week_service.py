"""Tests for the weekly cycle: week creation, sales and inventory drafts."""

from decimal import Decimal

import pytest

from costbook.services import finalization_service, week_service
from costbook.services.exceptions import (
    ConflictError,
    ValidationError,
    WeekAlreadyExists,
    WeekNotDraftError,
    WeekNotFound,
)
from costbook.utils.constants import SALES_DAYS


@pytest.fixture
def draft_week(db, cheese):
    """Week 2024-W05 seeded with a zero inventory entry for cheese."""
    return week_service.create_week(db, "2024-W05", ingredient_ids=["cheese"], created_by="manager")


class TestCreateWeek:
    def test_new_week_is_draft_with_zero_seeds(self, db, draft_week):
        assert draft_week["id"] == "2024-W05"
        assert draft_week["status"] == "draft"
        assert draft_week["created_by"] == "manager"
        assert draft_week["finalized_at"] is None
        assert "version_counter" not in draft_week

        assert week_service.get_week_sales(db, "2024-W05") == {day: 0 for day in SALES_DAYS}
        assert week_service.get_week_inventory(db, "2024-W05") == [
            {"ingredient_id": "cheese", "begin": 0, "received": 0, "end": 0, "usage": 0}
        ]

    def test_seed_ids_deduplicated(self, db):
        week_service.create_week(db, "2024-W06", ingredient_ids=["beef", "cheese", "beef"])
        entries = week_service.get_week_inventory(db, "2024-W06")
        assert [entry["ingredient_id"] for entry in entries] == ["beef", "cheese"]

    def test_without_seeds(self, db):
        week_service.create_week(db, "2024-W06")
        assert week_service.get_week_inventory(db, "2024-W06") == []

    def test_duplicate_week_is_conflict(self, db, draft_week):
        with pytest.raises(WeekAlreadyExists) as exc_info:
            week_service.create_week(db, "2024-W05")
        assert isinstance(exc_info.value, ConflictError)

    @pytest.mark.parametrize("week_id", ["", "   ", "W" * 51])
    def test_invalid_week_id(self, db, week_id):
        with pytest.raises(ValidationError):
            week_service.create_week(db, week_id)

    def test_list_weeks_newest_first(self, db):
        week_service.create_week(db, "2024-W05")
        week_service.create_week(db, "2024-W06")

        assert [week["id"] for week in week_service.list_weeks(db)] == ["2024-W06", "2024-W05"]

    def test_list_draft_weeks(self, db, draft_week):
        week_service.create_week(db, "2024-W06")
        week_service.save_week_inventory(db, "2024-W05", [{"ingredient_id": "cheese", "end": 0}])
        finalization_service.finalize_week(db, "2024-W05")

        assert [week["id"] for week in week_service.list_draft_weeks(db)] == ["2024-W06"]

    def test_get_missing_week(self, db):
        with pytest.raises(WeekNotFound):
            week_service.get_week(db, "2024-W05")


class TestSaveWeekSales:
    def test_merge_only_supplied_days(self, db, draft_week):
        week_service.save_week_sales(db, "2024-W05", {"mon": "100.50", "tue": 200})
        result = week_service.save_week_sales(db, "2024-W05", {"tue": 250, "sun": 75})

        assert result["mon"] == Decimal("100.50")
        assert result["tue"] == Decimal("250")
        assert result["sun"] == Decimal("75")
        assert result["wed"] == 0
        assert week_service.get_week_sales(db, "2024-W05") == result

    def test_negative_amount_rejected(self, db, draft_week):
        with pytest.raises(ValidationError):
            week_service.save_week_sales(db, "2024-W05", {"mon": -1})
        assert week_service.get_week_sales(db, "2024-W05")["mon"] == 0

    def test_unknown_day_rejected(self, db, draft_week):
        with pytest.raises(ValidationError) as exc_info:
            week_service.save_week_sales(db, "2024-W05", {"monday": 10})
        assert "monday" in str(exc_info.value)

    def test_missing_week(self, db):
        with pytest.raises(WeekNotFound):
            week_service.save_week_sales(db, "2024-W05", {"mon": 10})


class TestSaveWeekInventory:
    def test_merge_fields(self, db, draft_week):
        week_service.save_week_inventory(db, "2024-W05", [{"ingredient_id": "cheese", "begin": 10}])
        entries = week_service.save_week_inventory(
            db, "2024-W05", [{"ingredient_id": "cheese", "received": 5, "end": 3}]
        )

        assert entries == [
            {"ingredient_id": "cheese", "begin": 10, "received": 5, "end": 3, "usage": 12}
        ]

    def test_new_entries_default_to_zero(self, db, draft_week):
        entries = week_service.save_week_inventory(
            db, "2024-W05", [{"ingredient_id": "beef", "end": 2}]
        )

        assert [entry["ingredient_id"] for entry in entries] == ["beef", "cheese"]
        assert entries[0]["begin"] == 0
        assert entries[0]["usage"] == Decimal("-2")

    def test_unmentioned_entries_untouched(self, db, draft_week):
        week_service.save_week_inventory(db, "2024-W05", [{"ingredient_id": "cheese", "begin": 10}])
        week_service.save_week_inventory(db, "2024-W05", [{"ingredient_id": "beef", "begin": 4}])

        entries = {e["ingredient_id"]: e for e in week_service.get_week_inventory(db, "2024-W05")}
        assert entries["cheese"]["begin"] == Decimal("10")

    def test_negative_count_rejected(self, db, draft_week):
        with pytest.raises(ValidationError):
            week_service.save_week_inventory(
                db, "2024-W05", [{"ingredient_id": "cheese", "begin": 10, "end": -1}]
            )
        assert week_service.get_week_inventory(db, "2024-W05")[0]["begin"] == 0

    def test_missing_ingredient_id_rejected(self, db, draft_week):
        with pytest.raises(ValidationError):
            week_service.save_week_inventory(db, "2024-W05", [{"begin": 1}])


class TestFinalizedWeekIsReadOnly:
    @pytest.fixture
    def finalized_week(self, db, draft_week):
        week_service.save_week_inventory(
            db, "2024-W05", [{"ingredient_id": "cheese", "begin": 10, "received": 5, "end": 3}]
        )
        finalization_service.finalize_week(db, "2024-W05", finalized_by="manager")

    def test_sales_refused(self, db, finalized_week):
        with pytest.raises(WeekNotDraftError) as exc_info:
            week_service.save_week_sales(db, "2024-W05", {"mon": 10})

        assert isinstance(exc_info.value, ConflictError)
        assert exc_info.value.status == "finalized"
        assert week_service.get_week_sales(db, "2024-W05")["mon"] == 0

    def test_inventory_refused(self, db, finalized_week):
        with pytest.raises(WeekNotDraftError):
            week_service.save_week_inventory(db, "2024-W05", [{"ingredient_id": "cheese", "end": 0}])

        assert week_service.get_week_inventory(db, "2024-W05")[0]["end"] == Decimal("3")


class TestWeekFinancials:
    def test_draft_week_has_no_cost_figures(self, db, draft_week):
        week_service.save_week_sales(db, "2024-W05", {"mon": 100})

        financials = week_service.get_week_financials(db, "2024-W05")

        assert financials["gross_sales"] == Decimal("100")
        assert financials["total_cost_of_sales"] is None
        assert financials["gross_margin"] is None
        assert week_service.get_week_report(db, "2024-W05") is None

    def test_finalized_week(self, db, draft_week):
        week_service.save_week_sales(
            db, "2024-W05", {day: 100 for day in ("mon", "tue", "wed", "thu", "fri")}
        )
        week_service.save_week_sales(db, "2024-W05", {"sat": 300, "sun": 200})
        week_service.save_week_inventory(
            db, "2024-W05", [{"ingredient_id": "cheese", "begin": 10, "received": 5, "end": 3}]
        )
        finalization_service.finalize_week(db, "2024-W05")

        financials = week_service.get_week_financials(db, "2024-W05")

        assert financials["gross_sales"] == Decimal("1000")
        assert financials["total_cost_of_sales"] == Decimal("36")
        assert financials["gross_profit"] == Decimal("964.00")
        assert financials["gross_margin"] == Decimal("96.40")
        assert financials["food_cost_percentage"] == Decimal("3.60")
