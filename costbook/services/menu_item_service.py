"""
Menu Item Service - recipe composition for sellable items.

A menu item's recipe is a set of lines, each saying how much of one
ingredient goes into a serving. ``upsert_menu_item`` always receives the
complete line set: lines in the new set are created or updated, lines that
are no longer present are deleted, all in one unit of work.

Composition performs no costing. ``calculate_menu_item_cost`` is a separate
read used by reporting screens; week finalization never calls it.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from costbook.models import Ingredient, MenuItem, RecipeLine
from costbook.utils.slug_utils import ensure_id
from costbook.utils.validators import validate_menu_item_data, validate_recipe_line_data

from .batch_graph import IngredientGraph, RecipeEdge
from .database import Database
from .dto_utils import to_decimal
from .exceptions import IngredientNotFound, MenuItemNotFound, ValidationError
from .logging_utils import get_service_logger, log_operation
from .report_computation import calculate_food_cost_percentage

logger = get_service_logger(__name__)


def _menu_item_to_dict(menu_item: MenuItem) -> Dict[str, Any]:
    result = menu_item.to_dict()
    result["recipe_lines"] = [line.to_dict() for line in menu_item.recipe_lines]
    return result


def _load_menu_item(session: Session, menu_item_id: str) -> Optional[MenuItem]:
    return (
        session.query(MenuItem)
        .options(selectinload(MenuItem.recipe_lines))
        .filter(MenuItem.id == menu_item_id)
        .one_or_none()
    )


def _normalize_lines(recipe_lines: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Validate lines and assign ids; duplicate ids in one set are rejected."""
    errors: List[str] = []
    normalized = []
    seen = set()

    for index, line in enumerate(recipe_lines, start=1):
        is_valid, line_errors = validate_recipe_line_data(line, f"Line {index}")
        if not is_valid:
            errors.extend(line_errors)
            continue

        line_id = ensure_id(line.get("id"), f"{line['ingredient_id']}-{line['unit']}")
        if line_id in seen:
            errors.append(f"Line {index}: duplicate line id '{line_id}'")
            continue
        seen.add(line_id)

        normalized.append(
            {
                "id": line_id,
                "ingredient_id": line["ingredient_id"],
                "quantity": to_decimal(line["quantity"], "quantity"),
                "unit": line["unit"],
            }
        )

    if errors:
        raise ValidationError(errors)
    return normalized


def upsert_menu_item(
    db: Database, item: Dict[str, Any], recipe_lines: List[Dict[str, Any]]
) -> Dict[str, Any]:
    """
    Create or update a menu item and replace its full recipe-line set.

    Args:
        db: Database handle
        item: Menu item fields: name (required), id (defaults to a slug of
            the name), is_active, selling_price
        recipe_lines: The complete new line set; each line has
            ingredient_id, quantity, unit and an optional id (defaults to
            "<ingredient_id>-<unit>")

    Returns:
        The menu item as a dictionary including its recipe_lines

    Raises:
        ValidationError: If the item or any line is invalid
        IngredientNotFound: If a line references a missing ingredient
    """
    is_valid, errors = validate_menu_item_data(item)
    if not is_valid:
        raise ValidationError(errors)

    menu_item_id = ensure_id(item.get("id"), item["name"])
    lines = _normalize_lines(recipe_lines)
    selling_price = to_decimal(item.get("selling_price"), "selling_price")

    def work(session: Session) -> Dict[str, Any]:
        for line in lines:
            if session.get(Ingredient, line["ingredient_id"]) is None:
                raise IngredientNotFound(line["ingredient_id"])

        menu_item = _load_menu_item(session, menu_item_id)
        if menu_item is None:
            menu_item = MenuItem(id=menu_item_id)
            session.add(menu_item)

        menu_item.name = item["name"].strip()
        menu_item.is_active = item.get("is_active", True)
        menu_item.selling_price = selling_price

        existing = {line.id: line for line in menu_item.recipe_lines}
        keep_ids = {line["id"] for line in lines}

        for line_id, line in existing.items():
            if line_id not in keep_ids:
                menu_item.recipe_lines.remove(line)

        for line in lines:
            current = existing.get(line["id"])
            if current is None:
                menu_item.recipe_lines.append(
                    RecipeLine(
                        id=line["id"],
                        ingredient_id=line["ingredient_id"],
                        quantity=line["quantity"],
                        unit=line["unit"],
                    )
                )
            else:
                current.ingredient_id = line["ingredient_id"]
                current.quantity = line["quantity"]
                current.unit = line["unit"]

        session.flush()
        return _menu_item_to_dict(menu_item)

    result = db.run_in_transaction(work, operation="upsert_menu_item")
    log_operation(
        logger,
        operation="upsert_menu_item",
        outcome="success",
        menu_item_id=menu_item_id,
        line_count=len(lines),
    )
    return result


def get_menu_item_with_recipe(db: Database, menu_item_id: str) -> Dict[str, Any]:
    """
    Retrieve a menu item with its recipe lines.

    Raises:
        MenuItemNotFound: If the menu item doesn't exist
    """
    with db.session_scope() as session:
        menu_item = _load_menu_item(session, menu_item_id)
        if menu_item is None:
            raise MenuItemNotFound(menu_item_id)
        return _menu_item_to_dict(menu_item)


def list_menu_items(db: Database, active_only: bool = False) -> List[Dict[str, Any]]:
    """All menu items ordered by name, each with its recipe lines."""
    with db.session_scope() as session:
        query = session.query(MenuItem).options(selectinload(MenuItem.recipe_lines))
        if active_only:
            query = query.filter(MenuItem.is_active.is_(True))
        return [_menu_item_to_dict(menu_item) for menu_item in query.order_by(MenuItem.name).all()]


def delete_menu_item(db: Database, menu_item_id: str) -> None:
    """
    Delete a menu item and its recipe lines.

    Raises:
        MenuItemNotFound: If the menu item doesn't exist
    """

    def work(session: Session) -> None:
        menu_item = _load_menu_item(session, menu_item_id)
        if menu_item is None:
            raise MenuItemNotFound(menu_item_id)
        session.delete(menu_item)

    db.run_in_transaction(work, operation="delete_menu_item")
    log_operation(logger, operation="delete_menu_item", outcome="success", menu_item_id=menu_item_id)


def calculate_menu_item_cost(db: Database, menu_item_id: str) -> Dict[str, Any]:
    """
    Cost one serving of a menu item at current ingredient prices.

    Recipe units are converted to each ingredient's inventory unit where the
    unit tables allow it, batch ingredients are rolled up through their own
    recipes, and food cost percentage is cost / selling_price * 100 (0 when
    the item has no price).

    Returns:
        Dictionary with total_recipe_cost, food_cost_percentage and lines

    Raises:
        MenuItemNotFound: If the menu item doesn't exist
    """
    with db.session_scope() as session:
        menu_item = _load_menu_item(session, menu_item_id)
        if menu_item is None:
            raise MenuItemNotFound(menu_item_id)
        edges = [
            RecipeEdge(menu_item_id, line.ingredient_id, line.quantity, line.unit)
            for line in menu_item.recipe_lines
        ]
        selling_price = menu_item.selling_price
        graph = IngredientGraph.from_session(session)

    summary = graph.recipe_cost(edges)
    summary.food_cost_percentage = calculate_food_cost_percentage(
        summary.total_recipe_cost, selling_price
    )
    return summary.to_dict()
