"""Tests for the ingredient catalog and its price version ledger.

Tests verify:
- unit_cost = case_price / units_per_case, to 4 places
- Creation opens exactly one version and points current_version_id at it
- Every update closes the open version and opens the next at the same instant
- Versions are ordered, contiguous and never overlap
- Invalid input is rejected before anything is written
- Batch recipes reject cycles and roll up costs through nested batches
- Deletion is refused while recipes still reference the ingredient
"""

from datetime import datetime
from decimal import Decimal

import pytest

from costbook.models import IngredientVersion
from costbook.services import ingredient_service, menu_item_service
from costbook.services.exceptions import (
    ConflictError,
    CyclicBatchRecipeError,
    IngredientAlreadyExists,
    IngredientInUse,
    IngredientNotFound,
    NotFoundError,
    ValidationError,
)


def _parse(timestamp):
    return datetime.fromisoformat(timestamp)


def _assert_version_invariants(db, ingredient_id):
    """Exactly one open version, mirrored by the ingredient, and no gaps or overlaps."""
    ingredient = ingredient_service.get_ingredient(db, ingredient_id)
    versions = list(reversed(ingredient_service.get_ingredient_versions(db, ingredient_id)))

    open_versions = [version for version in versions if version["effective_to"] is None]
    assert len(open_versions) == 1
    assert versions[-1] is open_versions[0]
    assert ingredient["current_version_id"] == open_versions[0]["id"]
    assert ingredient["unit_cost"] == open_versions[0]["unit_cost"]

    assert [version["sequence"] for version in versions] == list(range(1, len(versions) + 1))
    for earlier, later in zip(versions, versions[1:]):
        assert _parse(earlier["effective_from"]) <= _parse(earlier["effective_to"])
        assert earlier["effective_to"] == later["effective_from"]
    return versions


class TestCreateIngredient:
    def test_unit_cost_and_first_version(self, db, cheese):
        assert cheese["unit_cost"] == Decimal("3.0000")
        assert cheese["current_version_id"]

        versions = _assert_version_invariants(db, "cheese")
        assert len(versions) == 1
        assert versions[0]["case_price"] == Decimal("30")
        assert versions[0]["units_per_case"] == Decimal("10")

    def test_unit_cost_rounded_to_four_places(self, db, make_ingredient):
        ingredient = make_ingredient(db, "limes", 10, 3, "each")
        assert ingredient["unit_cost"] == Decimal("3.3333")

    def test_id_defaults_to_slug_of_name(self, db):
        ingredient = ingredient_service.create_ingredient(
            db, {"name": "Ground Beef", "inventory_unit": "lb", "units_per_case": 20, "case_price": 50}
        )
        assert ingredient["id"] == "ground-beef"
        assert ingredient["category"] == "food"
        assert ingredient["is_active"] is True

    def test_recipe_unit_conversion_derived(self, db, make_ingredient):
        ingredient = make_ingredient(db, "beef", 40, 20, "lb", recipe_unit="oz")
        assert ingredient["conversion_factor"] == Decimal("16")

    def test_custom_recipe_unit_keeps_supplied_factor(self, db, make_ingredient):
        ingredient = make_ingredient(
            db, "cilantro", 20, 10, "bunch", recipe_unit="sprig", conversion_factor=40
        )
        assert ingredient["conversion_factor"] == Decimal("40")

    def test_duplicate_id_is_conflict(self, db, cheese, make_ingredient):
        with pytest.raises(IngredientAlreadyExists) as exc_info:
            make_ingredient(db, "cheese", 10, 1)
        assert isinstance(exc_info.value, ConflictError)

    def test_zero_units_per_case_rejected(self, db, make_ingredient):
        with pytest.raises(ValidationError):
            make_ingredient(db, "cheese", 30, 0)
        assert ingredient_service.list_ingredients(db) == []

    def test_negative_case_price_rejected(self, db, make_ingredient):
        with pytest.raises(ValidationError):
            make_ingredient(db, "cheese", -1, 10)

    def test_invalid_category_rejected(self, db, make_ingredient):
        with pytest.raises(ValidationError):
            make_ingredient(db, "cheese", 30, 10, category="dairy")


class TestUpdateIngredient:
    def test_price_change_rotates_version(self, db, cheese):
        updated = ingredient_service.update_ingredient(db, "cheese", {"case_price": 36})

        assert updated["unit_cost"] == Decimal("3.6000")
        assert updated["current_version_id"] != cheese["current_version_id"]

        versions = _assert_version_invariants(db, "cheese")
        assert [version["unit_cost"] for version in versions] == [
            Decimal("3.0000"),
            Decimal("3.6000"),
        ]

    def test_many_updates_keep_exactly_one_open_version(self, db, cheese):
        for case_price in (31, 32, 33, 34, 35):
            ingredient_service.update_ingredient(db, "cheese", {"case_price": case_price})

        versions = _assert_version_invariants(db, "cheese")
        assert len(versions) == 6
        assert versions[-1]["unit_cost"] == Decimal("3.5000")

    def test_closed_versions_are_not_rewritten(self, db, cheese):
        ingredient_service.update_ingredient(db, "cheese", {"case_price": 40})
        first = ingredient_service.get_ingredient_versions(db, "cheese")[-1]

        ingredient_service.update_ingredient(db, "cheese", {"case_price": 50})

        assert ingredient_service.get_ingredient_versions(db, "cheese")[-1] == first

    def test_omitted_fields_keep_current_values(self, db, cheese):
        updated = ingredient_service.update_ingredient(db, "cheese", {"units_per_case": 12})

        assert updated["name"] == "Shredded Cheese"
        assert updated["case_price"] == Decimal("30")
        assert updated["unit_cost"] == Decimal("2.5000")

    def test_invalid_update_leaves_ingredient_unchanged(self, db, cheese):
        with pytest.raises(ValidationError):
            ingredient_service.update_ingredient(db, "cheese", {"units_per_case": 0})

        assert ingredient_service.get_ingredient(db, "cheese")["unit_cost"] == Decimal("3.0000")
        assert len(ingredient_service.get_ingredient_versions(db, "cheese")) == 1

    def test_update_missing_ingredient(self, db):
        with pytest.raises(IngredientNotFound) as exc_info:
            ingredient_service.update_ingredient(db, "ghost", {"case_price": 1})
        assert isinstance(exc_info.value, NotFoundError)

    def test_version_rows_belong_to_ingredient(self, db, cheese):
        ingredient_service.update_ingredient(db, "cheese", {"case_price": 40})

        with db.session_scope() as session:
            rows = session.query(IngredientVersion).filter_by(ingredient_id="cheese").all()
            assert len(rows) == 2


class TestActiveState:
    def test_deactivate_keeps_history(self, db, cheese):
        result = ingredient_service.set_ingredient_active_state(db, "cheese", False)

        assert result["is_active"] is False
        assert result["current_version_id"] == cheese["current_version_id"]
        assert len(ingredient_service.get_ingredient_versions(db, "cheese")) == 1

    def test_active_ids_exclude_inactive(self, db, cheese, make_ingredient):
        make_ingredient(db, "beef", 40, 20)
        ingredient_service.set_ingredient_active_state(db, "cheese", False)

        assert ingredient_service.get_active_ingredient_ids(db) == ["beef"]
        assert [i["id"] for i in ingredient_service.list_ingredients(db, active_only=True)] == ["beef"]
        assert len(ingredient_service.list_ingredients(db)) == 2


class TestBatchIngredients:
    def test_batch_unit_cost(self, db, salsa_ingredients):
        assert salsa_ingredients["salsa"]["unit_cost"] == 0
        assert [line["ingredient_id"] for line in salsa_ingredients["salsa"]["batch_lines"]] == [
            "tomato",
            "onion",
        ]
        assert ingredient_service.calculate_batch_unit_cost(db, "salsa") == Decimal("0.8750")

    def test_component_price_change_flows_into_batch_cost(self, db, salsa_ingredients):
        ingredient_service.update_ingredient(db, "tomato", {"case_price": 30})

        assert ingredient_service.calculate_batch_unit_cost(db, "salsa") == Decimal("1.6250")

    def test_nested_batch(self, db, salsa_ingredients):
        ingredient_service.create_ingredient(
            db,
            {
                "id": "salsa-bowl",
                "name": "Salsa Bowl",
                "inventory_unit": "each",
                "units_per_case": 1,
                "is_batch": True,
                "yield_quantity": 1,
                "yield_unit": "each",
                "recipe_lines": [{"ingredient_id": "salsa", "quantity": 2, "unit": "cup"}],
            },
        )

        assert ingredient_service.calculate_batch_unit_cost(db, "salsa-bowl") == Decimal("1.7500")

    def test_self_reference_rejected(self, db, salsa_ingredients):
        with pytest.raises(CyclicBatchRecipeError) as exc_info:
            ingredient_service.update_ingredient(
                db,
                "salsa",
                {"recipe_lines": [{"ingredient_id": "salsa", "quantity": 1, "unit": "cup"}]},
            )

        assert exc_info.value.cycle == ["salsa", "salsa"]
        salsa = ingredient_service.get_ingredient(db, "salsa")
        assert [line["ingredient_id"] for line in salsa["batch_lines"]] == ["tomato", "onion"]

    def test_indirect_cycle_rejected(self, db, salsa_ingredients):
        ingredient_service.create_ingredient(
            db,
            {
                "id": "salsa-bowl",
                "name": "Salsa Bowl",
                "inventory_unit": "each",
                "units_per_case": 1,
                "is_batch": True,
                "yield_quantity": 1,
                "yield_unit": "each",
                "recipe_lines": [{"ingredient_id": "salsa", "quantity": 2, "unit": "cup"}],
            },
        )

        with pytest.raises(CyclicBatchRecipeError):
            ingredient_service.update_ingredient(
                db,
                "salsa",
                {"recipe_lines": [{"ingredient_id": "salsa-bowl", "quantity": 1, "unit": "each"}]},
            )

        assert len(ingredient_service.get_ingredient_versions(db, "salsa")) == 1

    def test_missing_component_rejected(self, db):
        with pytest.raises(IngredientNotFound):
            ingredient_service.create_ingredient(
                db,
                {
                    "id": "salsa",
                    "name": "Salsa",
                    "inventory_unit": "cup",
                    "units_per_case": 1,
                    "is_batch": True,
                    "yield_quantity": 4,
                    "recipe_lines": [{"ingredient_id": "ghost", "quantity": 1, "unit": "lb"}],
                },
            )
        assert ingredient_service.list_ingredients(db) == []

    def test_replacing_recipe_lines(self, db, salsa_ingredients):
        updated = ingredient_service.update_ingredient(
            db,
            "salsa",
            {"recipe_lines": [{"ingredient_id": "tomato", "quantity": 4, "unit": "lb"}]},
        )

        assert [line["quantity"] for line in updated["batch_lines"]] == [Decimal("4")]
        assert ingredient_service.calculate_batch_unit_cost(db, "salsa") == Decimal("1.5000")

    def test_converting_to_regular_clears_batch_fields(self, db, salsa_ingredients):
        updated = ingredient_service.update_ingredient(
            db, "salsa", {"is_batch": False, "case_price": 8, "units_per_case": 4}
        )

        assert updated["batch_lines"] == []
        assert updated["yield_quantity"] is None
        assert updated["unit_cost"] == Decimal("2.0000")


class TestDeleteIngredient:
    def test_delete_unused(self, db, cheese):
        ingredient_service.delete_ingredient(db, "cheese")

        with pytest.raises(IngredientNotFound):
            ingredient_service.get_ingredient(db, "cheese")
        with db.session_scope() as session:
            assert session.query(IngredientVersion).count() == 0

    def test_delete_used_by_menu_item(self, db, cheese):
        menu_item_service.upsert_menu_item(
            db,
            {"id": "taco", "name": "Taco"},
            [{"ingredient_id": "cheese", "quantity": 1, "unit": "oz"}],
        )

        with pytest.raises(IngredientInUse) as exc_info:
            ingredient_service.delete_ingredient(db, "cheese")

        assert exc_info.value.dependencies == {"menu_recipes": 1, "batch_recipes": 0}
        assert ingredient_service.get_ingredient(db, "cheese")["id"] == "cheese"

    def test_delete_used_by_batch(self, db, salsa_ingredients):
        with pytest.raises(IngredientInUse) as exc_info:
            ingredient_service.delete_ingredient(db, "tomato")
        assert exc_info.value.dependencies["batch_recipes"] == 1

    def test_delete_missing(self, db):
        with pytest.raises(IngredientNotFound):
            ingredient_service.delete_ingredient(db, "ghost")
