"""Tests for menu item recipe composition and costing."""

from decimal import Decimal

import pytest

from costbook.models import RecipeLine
from costbook.services import ingredient_service, menu_item_service
from costbook.services.exceptions import IngredientNotFound, MenuItemNotFound, ValidationError


@pytest.fixture
def taco_ingredients(db, cheese, make_ingredient):
    """Cheese at 3.0000/lb and beef at 2.0000/lb."""
    make_ingredient(db, "beef", 40, 20, "lb")
    make_ingredient(db, "tortilla", 12, 48, "each", category="food")


def _taco_lines():
    return [
        {"ingredient_id": "beef", "quantity": 8, "unit": "oz"},
        {"ingredient_id": "cheese", "quantity": 2, "unit": "oz"},
    ]


class TestUpsertMenuItem:
    def test_create_with_lines(self, db, taco_ingredients):
        result = menu_item_service.upsert_menu_item(
            db, {"id": "taco", "name": "Taco", "selling_price": "5.50"}, _taco_lines()
        )

        assert result["id"] == "taco"
        assert result["selling_price"] == Decimal("5.50")
        assert [line["id"] for line in result["recipe_lines"]] == ["beef-oz", "cheese-oz"]

    def test_id_defaults_to_slug(self, db, taco_ingredients):
        result = menu_item_service.upsert_menu_item(db, {"name": "Street Taco"}, _taco_lines())
        assert result["id"] == "street-taco"

    def test_full_replacement_deletes_absent_lines(self, db, taco_ingredients):
        menu_item_service.upsert_menu_item(db, {"id": "taco", "name": "Taco"}, _taco_lines())

        result = menu_item_service.upsert_menu_item(
            db,
            {"id": "taco", "name": "Taco"},
            [
                {"id": "beef-oz", "ingredient_id": "beef", "quantity": 6, "unit": "oz"},
                {"ingredient_id": "tortilla", "quantity": 2, "unit": "each"},
            ],
        )

        lines = {line["id"]: line for line in result["recipe_lines"]}
        assert set(lines) == {"beef-oz", "tortilla-each"}
        assert lines["beef-oz"]["quantity"] == Decimal("6")

        stored = menu_item_service.get_menu_item_with_recipe(db, "taco")
        assert {line["id"] for line in stored["recipe_lines"]} == {"beef-oz", "tortilla-each"}
        with db.session_scope() as session:
            assert session.query(RecipeLine).count() == 2

    def test_empty_line_set_clears_recipe(self, db, taco_ingredients):
        menu_item_service.upsert_menu_item(db, {"id": "taco", "name": "Taco"}, _taco_lines())
        result = menu_item_service.upsert_menu_item(db, {"id": "taco", "name": "Taco"}, [])
        assert result["recipe_lines"] == []

    def test_missing_ingredient_writes_nothing(self, db, taco_ingredients):
        with pytest.raises(IngredientNotFound):
            menu_item_service.upsert_menu_item(
                db,
                {"id": "taco", "name": "Taco"},
                _taco_lines() + [{"ingredient_id": "ghost", "quantity": 1, "unit": "oz"}],
            )

        with pytest.raises(MenuItemNotFound):
            menu_item_service.get_menu_item_with_recipe(db, "taco")

    def test_duplicate_line_ids_rejected(self, db, taco_ingredients):
        with pytest.raises(ValidationError) as exc_info:
            menu_item_service.upsert_menu_item(
                db,
                {"id": "taco", "name": "Taco"},
                [
                    {"ingredient_id": "beef", "quantity": 8, "unit": "oz"},
                    {"ingredient_id": "beef", "quantity": 2, "unit": "oz"},
                ],
            )
        assert "duplicate line id 'beef-oz'" in str(exc_info.value)

    def test_invalid_line_rejected(self, db, taco_ingredients):
        with pytest.raises(ValidationError):
            menu_item_service.upsert_menu_item(
                db,
                {"id": "taco", "name": "Taco"},
                [{"ingredient_id": "beef", "quantity": -1, "unit": "oz"}],
            )

    def test_composition_does_not_touch_prices(self, db, taco_ingredients):
        before = ingredient_service.get_ingredient(db, "beef")
        menu_item_service.upsert_menu_item(db, {"id": "taco", "name": "Taco"}, _taco_lines())
        assert ingredient_service.get_ingredient(db, "beef") == before


class TestMenuItemReads:
    def test_list_and_delete(self, db, taco_ingredients):
        menu_item_service.upsert_menu_item(db, {"id": "taco", "name": "Taco"}, _taco_lines())
        menu_item_service.upsert_menu_item(
            db, {"id": "nachos", "name": "Nachos", "is_active": False}, _taco_lines()
        )

        assert [item["id"] for item in menu_item_service.list_menu_items(db)] == ["nachos", "taco"]
        assert [item["id"] for item in menu_item_service.list_menu_items(db, active_only=True)] == [
            "taco"
        ]

        menu_item_service.delete_menu_item(db, "nachos")
        assert [item["id"] for item in menu_item_service.list_menu_items(db)] == ["taco"]

    def test_delete_missing(self, db):
        with pytest.raises(MenuItemNotFound):
            menu_item_service.delete_menu_item(db, "ghost")


class TestMenuItemCost:
    def test_cost_with_unit_conversion(self, db, taco_ingredients):
        menu_item_service.upsert_menu_item(
            db, {"id": "taco", "name": "Taco", "selling_price": "5.50"}, _taco_lines()
        )

        cost = menu_item_service.calculate_menu_item_cost(db, "taco")

        # 8 oz beef at 2.00/lb = 1.00; 2 oz cheese at 3.00/lb = 0.375
        assert cost["total_recipe_cost"] == Decimal("1.3750")
        assert cost["food_cost_percentage"] == Decimal("25.00")
        assert [line["line_cost"] for line in cost["lines"]] == [Decimal("1.0000"), Decimal("0.3750")]

    def test_cost_follows_current_prices(self, db, taco_ingredients):
        menu_item_service.upsert_menu_item(db, {"id": "taco", "name": "Taco"}, _taco_lines())
        ingredient_service.update_ingredient(db, "beef", {"case_price": 80})

        cost = menu_item_service.calculate_menu_item_cost(db, "taco")

        assert cost["total_recipe_cost"] == Decimal("2.3750")
        assert cost["food_cost_percentage"] == 0

    def test_cost_with_batch_ingredient(self, db, salsa_ingredients):
        menu_item_service.upsert_menu_item(
            db,
            {"id": "chips", "name": "Chips and Salsa", "selling_price": "2.00"},
            [{"ingredient_id": "salsa", "quantity": "0.5", "unit": "cup"}],
        )

        cost = menu_item_service.calculate_menu_item_cost(db, "chips")

        assert cost["total_recipe_cost"] == Decimal("0.4375")
        assert cost["food_cost_percentage"] == Decimal("21.88")

    def test_cost_missing_item(self, db):
        with pytest.raises(MenuItemNotFound):
            menu_item_service.calculate_menu_item_cost(db, "ghost")
