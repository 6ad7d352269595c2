"""
Ingredient Service - catalog and price version ledger.

This service provides:
- Ingredient creation with its first price version
- Price updates that rotate versions (close the open one, open the next)
- Active/inactive toggling without touching price history
- Reads of ingredients and their version history
- Batch ingredient recipes with reference-cycle rejection and cost rollup
- Deletion guarded by recipe references

Version invariant: after the first version exists, every ingredient has
exactly one version with ``effective_to`` of None, and ``Ingredient.unit_cost``
and ``Ingredient.current_version_id`` mirror it. Creation and rotation each
run as one retryable unit of work, so readers never see zero or two open
versions. A concurrent update of the same ingredient fails the version
check on ``Ingredient`` and is re-run against the new open version.
Batch recipes are checked for cycles before writing and again after the
flush, once the write lock is held.
"""

import uuid
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from costbook.models import (
    BatchRecipeLine,
    Ingredient,
    IngredientCategory,
    IngredientVersion,
    RecipeLine,
)
from costbook.utils.constants import UNIT_COST_QUANTUM
from costbook.utils.datetime_utils import to_iso, utc_now
from costbook.utils.slug_utils import ensure_id
from costbook.utils.validators import sanitize_string, validate_ingredient_data

from .batch_graph import IngredientGraph, IngredientNode, RecipeEdge
from .database import Database, is_unique_violation
from .dto_utils import to_decimal
from .exceptions import (
    IngredientAlreadyExists,
    IngredientInUse,
    IngredientNotFound,
    ValidationError,
)
from .logging_utils import get_service_logger, log_operation
from .unit_converter import get_conversion_factor

logger = get_service_logger(__name__)

# Fields an update may change; anything omitted keeps its current value
_INGREDIENT_FIELDS = (
    "name",
    "inventory_unit",
    "recipe_unit",
    "conversion_factor",
    "units_per_case",
    "case_price",
    "category",
    "is_active",
    "is_batch",
    "yield_quantity",
    "yield_unit",
)


# ============================================================================
# Helpers
# ============================================================================


def calculate_unit_cost(case_price: Decimal, units_per_case: Decimal) -> Decimal:
    """
    Cost of one inventory unit, to 4 decimal places.

    Raises:
        ValidationError: If units_per_case is not positive

    Example:
        >>> calculate_unit_cost(Decimal("30"), Decimal("10"))
        Decimal('3.0000')
    """
    if units_per_case is None or units_per_case <= 0:
        raise ValidationError(["Units per case must be greater than zero"])
    return (case_price / units_per_case).quantize(UNIT_COST_QUANTUM, rounding=ROUND_HALF_UP)


def derive_conversion_factor(
    inventory_unit: str, recipe_unit: Optional[str], supplied: Optional[Decimal] = None
) -> Optional[Decimal]:
    """
    Recipe units per inventory unit.

    Standard units are converted from the unit tables; for anything else
    (e.g., "slice") the caller-supplied factor is kept.
    """
    if not recipe_unit:
        return None
    factor = get_conversion_factor(inventory_unit, recipe_unit)
    return factor if factor is not None else supplied


def _validate(data: Dict[str, Any]) -> None:
    is_valid, errors = validate_ingredient_data(data)
    if not is_valid:
        raise ValidationError(errors)


def _current_fields(ingredient: Ingredient) -> Dict[str, Any]:
    fields = {name: getattr(ingredient, name) for name in _INGREDIENT_FIELDS}
    fields["recipe_lines"] = [line.to_dict() for line in ingredient.batch_lines]
    return fields


def _build_batch_lines(ingredient_id: str, lines: List[Dict]) -> List[BatchRecipeLine]:
    return [
        BatchRecipeLine(
            batch_ingredient_id=ingredient_id,
            position=position,
            line_id=ensure_id(line.get("id"), f"{line['ingredient_id']}-{line['unit']}"),
            ingredient_id=line["ingredient_id"],
            quantity=to_decimal(line["quantity"], "quantity"),
            unit=line["unit"],
        )
        for position, line in enumerate(lines)
    ]


def _check_batch_recipe(session: Session, ingredient_id: str, data: Dict[str, Any]) -> None:
    """
    Reject batch recipe lines that reference missing ingredients or close a cycle.

    Runs against the graph as it would look after the change, before
    anything is written.
    """
    graph = IngredientGraph.from_session(session)
    if ingredient_id not in graph.nodes:
        graph.add_node(IngredientNode(ingredient_id, is_batch=True))

    edges = [
        RecipeEdge(
            ingredient_id,
            line["ingredient_id"],
            to_decimal(line["quantity"], "quantity"),
            line["unit"],
        )
        for line in data.get("recipe_lines") or []
    ]
    for edge in edges:
        if edge.target not in graph.nodes:
            raise IngredientNotFound(edge.target)

    graph.replace_edges(ingredient_id, edges)
    graph.assert_acyclic()


def _verify_stored_graph(session: Session) -> None:
    """
    Re-check the stored ingredient graph after this unit of work has flushed.

    The first check reads the graph before any write lock is held, so a
    concurrent update may commit a crossing edge in between. Once the flush
    holds the SQLite write lock, the graph read here is exactly what the
    commit will persist.

    Raises:
        CyclicBatchRecipeError: If the stored graph now contains a cycle
    """
    # Collections loaded by the first check may predate the concurrent commit
    session.expire_all()
    IngredientGraph.from_session(session).assert_acyclic()


def _open_version(
    ingredient: Ingredient,
    case_price: Decimal,
    units_per_case: Decimal,
    unit_cost: Decimal,
    now: datetime,
) -> IngredientVersion:
    """Close the open version (if any) and append the next one, all at ``now``."""
    open_version = ingredient.get_open_version()
    if open_version is not None:
        open_version.effective_to = now

    next_sequence = max((version.sequence for version in ingredient.versions), default=0) + 1
    version = IngredientVersion(
        id=str(uuid.uuid4()),
        sequence=next_sequence,
        case_price=case_price,
        units_per_case=units_per_case,
        unit_cost=unit_cost,
        effective_from=now,
        effective_to=None,
    )
    ingredient.versions.append(version)

    ingredient.case_price = case_price
    ingredient.units_per_case = units_per_case
    ingredient.unit_cost = unit_cost
    ingredient.current_version_id = version.id
    return version


def _load_ingredient(session: Session, ingredient_id: str) -> Ingredient:
    ingredient = (
        session.query(Ingredient)
        .options(selectinload(Ingredient.versions), selectinload(Ingredient.batch_lines))
        .filter(Ingredient.id == ingredient_id)
        .one_or_none()
    )
    if ingredient is None:
        raise IngredientNotFound(ingredient_id)
    return ingredient


def _version_to_dict(version: IngredientVersion) -> Dict[str, Any]:
    return {
        "id": version.id,
        "ingredient_id": version.ingredient_id,
        "sequence": version.sequence,
        "case_price": version.case_price,
        "units_per_case": version.units_per_case,
        "unit_cost": version.unit_cost,
        "effective_from": to_iso(version.effective_from),
        "effective_to": to_iso(version.effective_to),
    }


# ============================================================================
# Catalog Operations
# ============================================================================


def create_ingredient(db: Database, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create an ingredient and its first price version.

    Args:
        db: Database handle
        data: Ingredient fields. Required: name, inventory_unit, units_per_case.
            Optional: id (defaults to a slug of the name), case_price (0),
            recipe_unit, conversion_factor, category ("food"), is_active (True),
            is_batch, recipe_lines, yield_quantity, yield_unit.

    Returns:
        The created ingredient as a dictionary

    Raises:
        ValidationError: If fields are invalid or batch lines close a cycle
        IngredientAlreadyExists: If the id is already taken
        IngredientNotFound: If a batch recipe line references a missing ingredient

    Example:
        >>> create_ingredient(db, {"name": "Cheese", "inventory_unit": "lb",
        ...                        "units_per_case": 10, "case_price": 30})["unit_cost"]
        Decimal('3.0000')
    """
    data = dict(data)
    data.setdefault("case_price", 0)
    data.setdefault("category", IngredientCategory.FOOD.value)
    _validate(data)

    ingredient_id = ensure_id(data.get("id"), data["name"])
    is_batch = bool(data.get("is_batch"))
    units_per_case = to_decimal(data["units_per_case"], "units_per_case")
    case_price = to_decimal(data["case_price"], "case_price")
    unit_cost = Decimal("0") if is_batch else calculate_unit_cost(case_price, units_per_case)
    recipe_unit = sanitize_string(data.get("recipe_unit"))

    def work(session: Session) -> Dict[str, Any]:
        if session.get(Ingredient, ingredient_id) is not None:
            raise IngredientAlreadyExists(ingredient_id)

        if is_batch:
            _check_batch_recipe(session, ingredient_id, data)

        ingredient = Ingredient(
            id=ingredient_id,
            name=data["name"].strip(),
            inventory_unit=data["inventory_unit"],
            recipe_unit=recipe_unit,
            conversion_factor=derive_conversion_factor(
                data["inventory_unit"],
                recipe_unit,
                to_decimal(data.get("conversion_factor"), "conversion_factor"),
            ),
            is_active=data.get("is_active", True),
            category=data["category"],
            is_batch=is_batch,
            yield_quantity=to_decimal(data.get("yield_quantity"), "yield_quantity")
            if is_batch
            else None,
            yield_unit=data.get("yield_unit") if is_batch else None,
        )
        session.add(ingredient)
        _open_version(ingredient, case_price, units_per_case, unit_cost, utc_now())
        if is_batch:
            ingredient.batch_lines = _build_batch_lines(
                ingredient_id, data.get("recipe_lines") or []
            )
        try:
            session.flush()
        except IntegrityError as e:
            if is_unique_violation(e, "ingredients.id"):
                raise IngredientAlreadyExists(ingredient_id) from e
            raise
        if is_batch:
            _verify_stored_graph(session)
        return ingredient.to_dict()

    result = db.run_in_transaction(work, operation="create_ingredient")
    log_operation(
        logger,
        operation="create_ingredient",
        outcome="success",
        ingredient_id=ingredient_id,
        version_id=result["current_version_id"],
        unit_cost=str(result["unit_cost"]),
    )
    return result


def update_ingredient(db: Database, ingredient_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Update an ingredient and rotate its price version.

    In one unit of work: close the open version at ``now``, open the next
    version at the same ``now`` with the new pricing, and point
    ``current_version_id`` and ``unit_cost`` at it. Fields omitted from
    ``data`` keep their current values.

    Converting a batch ingredient to a regular one (``is_batch=False``)
    clears its yield and recipe lines.

    Args:
        db: Database handle
        ingredient_id: Ingredient to update
        data: Fields to change

    Returns:
        The updated ingredient as a dictionary

    Raises:
        IngredientNotFound: If the ingredient (or a batch line target) doesn't exist
        ValidationError: If the merged fields are invalid or batch lines close a cycle
    """

    def work(session: Session) -> Dict[str, Any]:
        ingredient = _load_ingredient(session, ingredient_id)

        merged = {**_current_fields(ingredient), **data}
        _validate(merged)

        is_batch = bool(merged.get("is_batch"))
        if is_batch:
            _check_batch_recipe(session, ingredient_id, merged)

        units_per_case = to_decimal(merged["units_per_case"], "units_per_case")
        case_price = to_decimal(merged["case_price"], "case_price")
        unit_cost = Decimal("0") if is_batch else calculate_unit_cost(case_price, units_per_case)
        recipe_unit = sanitize_string(merged.get("recipe_unit"))

        ingredient.name = merged["name"].strip()
        ingredient.inventory_unit = merged["inventory_unit"]
        ingredient.recipe_unit = recipe_unit
        ingredient.conversion_factor = derive_conversion_factor(
            merged["inventory_unit"],
            recipe_unit,
            to_decimal(merged.get("conversion_factor"), "conversion_factor"),
        )
        ingredient.category = merged["category"]
        ingredient.is_active = bool(merged["is_active"])
        ingredient.is_batch = is_batch

        # Clear old lines before adding replacements; positions are reused
        ingredient.batch_lines.clear()
        session.flush()
        if is_batch:
            ingredient.yield_quantity = to_decimal(merged.get("yield_quantity"), "yield_quantity")
            ingredient.yield_unit = merged.get("yield_unit")
            ingredient.batch_lines.extend(
                _build_batch_lines(ingredient_id, merged.get("recipe_lines") or [])
            )
        else:
            ingredient.yield_quantity = None
            ingredient.yield_unit = None

        _open_version(ingredient, case_price, units_per_case, unit_cost, utc_now())
        session.flush()
        if is_batch:
            _verify_stored_graph(session)
        return ingredient.to_dict()

    result = db.run_in_transaction(work, operation="update_ingredient")
    log_operation(
        logger,
        operation="update_ingredient",
        outcome="success",
        ingredient_id=ingredient_id,
        version_id=result["current_version_id"],
        unit_cost=str(result["unit_cost"]),
    )
    return result


def set_ingredient_active_state(db: Database, ingredient_id: str, is_active: bool) -> Dict[str, Any]:
    """
    Mark an ingredient active or inactive. Price history is untouched.

    Raises:
        IngredientNotFound: If the ingredient doesn't exist
    """

    def work(session: Session) -> Dict[str, Any]:
        ingredient = _load_ingredient(session, ingredient_id)
        ingredient.is_active = bool(is_active)
        session.flush()
        return ingredient.to_dict()

    result = db.run_in_transaction(work, operation="set_ingredient_active_state")
    log_operation(
        logger,
        operation="set_ingredient_active_state",
        outcome="success",
        ingredient_id=ingredient_id,
        is_active=bool(is_active),
    )
    return result


def delete_ingredient(db: Database, ingredient_id: str) -> None:
    """
    Delete an ingredient and its version history.

    Finalized weeks keep their cost snapshots; they do not reference the
    catalog.

    Raises:
        IngredientNotFound: If the ingredient doesn't exist
        IngredientInUse: If a menu item or batch recipe still uses it
    """

    def work(session: Session) -> None:
        ingredient = _load_ingredient(session, ingredient_id)

        dependencies = {
            "menu_recipes": session.query(func.count(RecipeLine.id))
            .filter(RecipeLine.ingredient_id == ingredient_id)
            .scalar(),
            "batch_recipes": session.query(func.count(BatchRecipeLine.line_id))
            .filter(BatchRecipeLine.ingredient_id == ingredient_id)
            .scalar(),
        }
        if any(dependencies.values()):
            raise IngredientInUse(ingredient_id, dependencies)

        session.delete(ingredient)

    db.run_in_transaction(work, operation="delete_ingredient")
    log_operation(logger, operation="delete_ingredient", outcome="success", ingredient_id=ingredient_id)


# ============================================================================
# Reads
# ============================================================================


def get_ingredient(db: Database, ingredient_id: str) -> Dict[str, Any]:
    """
    Retrieve an ingredient by id.

    Raises:
        IngredientNotFound: If ingredient doesn't exist
    """
    with db.session_scope() as session:
        return _load_ingredient(session, ingredient_id).to_dict()


def list_ingredients(db: Database, active_only: bool = False) -> List[Dict[str, Any]]:
    """All ingredients ordered by name, optionally only active ones."""
    with db.session_scope() as session:
        query = session.query(Ingredient).options(selectinload(Ingredient.batch_lines))
        if active_only:
            query = query.filter(Ingredient.is_active.is_(True))
        return [ingredient.to_dict() for ingredient in query.order_by(Ingredient.name).all()]


def get_active_ingredient_ids(db: Database) -> List[str]:
    """Ids of active ingredients, ordered by name (used to seed new weeks)."""
    with db.session_scope() as session:
        rows = (
            session.query(Ingredient.id)
            .filter(Ingredient.is_active.is_(True))
            .order_by(Ingredient.name)
            .all()
        )
        return [row[0] for row in rows]


def get_ingredient_versions(db: Database, ingredient_id: str) -> List[Dict[str, Any]]:
    """
    Price history of an ingredient, newest first.

    Raises:
        IngredientNotFound: If ingredient doesn't exist
    """
    with db.session_scope() as session:
        if session.get(Ingredient, ingredient_id) is None:
            raise IngredientNotFound(ingredient_id)
        versions = (
            session.query(IngredientVersion)
            .filter(IngredientVersion.ingredient_id == ingredient_id)
            .order_by(IngredientVersion.sequence.desc())
            .all()
        )
        return [_version_to_dict(version) for version in versions]


def calculate_batch_unit_cost(db: Database, ingredient_id: str) -> Decimal:
    """
    Cost of one yield unit of a batch ingredient, rolled up through nested batches.

    Returns 0 for regular ingredients and for batches without lines or a
    positive yield.

    Raises:
        IngredientNotFound: If ingredient doesn't exist
    """
    with db.session_scope() as session:
        graph = IngredientGraph.from_session(session)
    if ingredient_id not in graph.nodes:
        raise IngredientNotFound(ingredient_id)
    return graph.batch_unit_cost(ingredient_id)
