"""
Ingredient reference graph for batch ingredients.

A batch ingredient (salsa, marinade, dough) is made in-house from a recipe
of other ingredients, which may themselves be batch ingredients. This module
models those references as an explicit directed graph: an arena of nodes
keyed by ingredient id plus a flat list of recipe edges.

This module provides:
- Cycle detection (depth-first, white/grey/black colouring) run before any
  batch recipe change is persisted
- Recursive cost rollup of a batch ingredient's cost per yield unit
- Recipe costing with unit conversion, shared with menu item costing

Transaction boundary: building the graph reads from the caller's session;
everything after that is pure computation.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session, selectinload

from costbook.models import Ingredient, IngredientCategory
from costbook.utils.constants import UNIT_COST_QUANTUM

from .exceptions import CyclicBatchRecipeError
from .unit_converter import get_conversion_factor

ZERO = Decimal("0")

WHITE, GREY, BLACK = 0, 1, 2

UNKNOWN_INGREDIENT_NAME = "Unknown Ingredient"


@dataclass
class IngredientNode:
    """Costing-relevant view of one ingredient."""

    ingredient_id: str
    name: str = UNKNOWN_INGREDIENT_NAME
    category: str = IngredientCategory.OTHER.value
    unit_cost: Decimal = ZERO
    inventory_unit: Optional[str] = None
    recipe_unit: Optional[str] = None
    conversion_factor: Optional[Decimal] = None
    is_batch: bool = False
    yield_quantity: Optional[Decimal] = None
    yield_unit: Optional[str] = None

    @classmethod
    def from_model(cls, ingredient: Ingredient) -> "IngredientNode":
        return cls(
            ingredient_id=ingredient.id,
            name=ingredient.name,
            category=ingredient.category,
            unit_cost=ingredient.unit_cost or ZERO,
            inventory_unit=ingredient.inventory_unit,
            recipe_unit=ingredient.recipe_unit,
            conversion_factor=ingredient.conversion_factor,
            is_batch=bool(ingredient.is_batch),
            yield_quantity=ingredient.yield_quantity,
            yield_unit=ingredient.yield_unit,
        )


@dataclass(frozen=True)
class RecipeEdge:
    """``source`` uses ``quantity`` ``unit`` of ``target`` per batch (or serving)."""

    source: str
    target: str
    quantity: Decimal
    unit: str


@dataclass
class RecipeLineCost:
    """Cost of one recipe line."""

    ingredient_id: str
    ingredient_name: str
    quantity: Decimal
    unit: str
    unit_cost: Decimal
    line_cost: Decimal
    category: str

    def to_dict(self) -> Dict:
        return {
            "ingredient_id": self.ingredient_id,
            "ingredient_name": self.ingredient_name,
            "quantity": self.quantity,
            "unit": self.unit,
            "unit_cost": self.unit_cost,
            "line_cost": self.line_cost,
            "category": self.category,
        }


@dataclass
class RecipeCostSummary:
    """Total cost of a recipe and its per-line costs."""

    total_recipe_cost: Decimal
    lines: List[RecipeLineCost] = field(default_factory=list)
    food_cost_percentage: Decimal = ZERO

    def to_dict(self) -> Dict:
        return {
            "total_recipe_cost": self.total_recipe_cost,
            "food_cost_percentage": self.food_cost_percentage,
            "lines": [line.to_dict() for line in self.lines],
        }


class IngredientGraph:
    """
    Arena of ingredient nodes plus the edge list of batch recipe lines.

    Example:
        >>> graph = IngredientGraph()
        >>> graph.add_node(IngredientNode("salsa", is_batch=True))
        >>> graph.add_node(IngredientNode("pico", is_batch=True))
        >>> graph.add_edge(RecipeEdge("salsa", "pico", Decimal("1"), "cup"))
        >>> graph.add_edge(RecipeEdge("pico", "salsa", Decimal("1"), "cup"))
        >>> graph.find_cycle()
        ['pico', 'salsa', 'pico']
    """

    def __init__(self):
        self.nodes: Dict[str, IngredientNode] = {}
        self.edges: List[RecipeEdge] = []

    @classmethod
    def from_session(cls, session: Session) -> "IngredientGraph":
        """Load every ingredient and batch recipe line visible to the session."""
        graph = cls()
        ingredients = (
            session.query(Ingredient).options(selectinload(Ingredient.batch_lines)).all()
        )
        for ingredient in ingredients:
            graph.add_node(IngredientNode.from_model(ingredient))
            if ingredient.is_batch:
                for line in ingredient.batch_lines:
                    graph.add_edge(
                        RecipeEdge(ingredient.id, line.ingredient_id, line.quantity, line.unit)
                    )
        return graph

    def add_node(self, node: IngredientNode) -> None:
        self.nodes[node.ingredient_id] = node

    def add_edge(self, edge: RecipeEdge) -> None:
        self.edges.append(edge)

    def edges_from(self, source: str) -> List[RecipeEdge]:
        return [edge for edge in self.edges if edge.source == source]

    def replace_edges(self, source: str, edges: Iterable[RecipeEdge]) -> None:
        """Swap the outgoing edges of ``source`` for a proposed recipe."""
        self.edges = [edge for edge in self.edges if edge.source != source]
        self.edges.extend(edges)

    def _adjacency(self) -> Dict[str, List[str]]:
        adjacency: Dict[str, List[str]] = {node_id: [] for node_id in self.nodes}
        for edge in self.edges:
            adjacency.setdefault(edge.source, []).append(edge.target)
            adjacency.setdefault(edge.target, [])
        return adjacency

    def find_cycle(self) -> Optional[List[str]]:
        """
        Return one reference cycle as a list of ids, or None if the graph is acyclic.

        The returned path starts and ends with the same id; a self-reference
        comes back as ``[id, id]``.
        """
        adjacency = self._adjacency()
        colour = {node_id: WHITE for node_id in adjacency}
        path: List[str] = []

        def visit(node_id: str) -> Optional[List[str]]:
            colour[node_id] = GREY
            path.append(node_id)
            for target in adjacency[node_id]:
                if colour[target] == GREY:
                    return path[path.index(target):] + [target]
                if colour[target] == WHITE:
                    cycle = visit(target)
                    if cycle:
                        return cycle
            path.pop()
            colour[node_id] = BLACK
            return None

        for node_id in sorted(adjacency):
            if colour[node_id] == WHITE:
                cycle = visit(node_id)
                if cycle:
                    return cycle
        return None

    def assert_acyclic(self) -> None:
        """
        Raise if any batch recipe references itself, directly or indirectly.

        Raises:
            CyclicBatchRecipeError: With the offending cycle
        """
        cycle = self.find_cycle()
        if cycle:
            raise CyclicBatchRecipeError(cycle)

    # ------------------------------------------------------------------
    # Costing
    # ------------------------------------------------------------------

    def batch_unit_cost(self, ingredient_id: str) -> Decimal:
        """
        Cost of one yield unit of a batch ingredient, rolled up through nested batches.

        Returns 0 for an ingredient that is not a valid batch: not a batch,
        no recipe lines, or a missing or non-positive yield.
        """
        return self._batch_unit_cost(ingredient_id, frozenset())

    def _batch_unit_cost(self, ingredient_id: str, visiting: frozenset) -> Decimal:
        if ingredient_id in visiting:
            raise CyclicBatchRecipeError(list(visiting) + [ingredient_id])

        node = self.nodes.get(ingredient_id)
        if node is None or not node.is_batch:
            return ZERO
        if node.yield_quantity is None or node.yield_quantity <= 0:
            return ZERO

        lines = self.edges_from(ingredient_id)
        if not lines:
            return ZERO

        summary = self._recipe_cost(lines, visiting | {ingredient_id})
        cost_per_yield_unit = summary.total_recipe_cost / node.yield_quantity
        return cost_per_yield_unit.quantize(UNIT_COST_QUANTUM, rounding=ROUND_HALF_UP)

    def recipe_cost(self, lines: Iterable[RecipeEdge]) -> RecipeCostSummary:
        """Cost a set of recipe lines (a menu item's or a batch's)."""
        return self._recipe_cost(lines, frozenset())

    def _recipe_cost(self, lines: Iterable[RecipeEdge], visiting: frozenset) -> RecipeCostSummary:
        line_costs = []
        for line in lines:
            node = self.nodes.get(line.target)
            quantity = line.quantity if line.quantity is not None and line.quantity > 0 else ZERO

            if node is None:
                unit_cost = ZERO
            elif node.is_batch:
                unit_cost = self._batch_cost_in_unit(node, line.unit, visiting)
            else:
                unit_cost = effective_unit_cost(node, line.unit)

            line_costs.append(
                RecipeLineCost(
                    ingredient_id=line.target,
                    ingredient_name=node.name if node else UNKNOWN_INGREDIENT_NAME,
                    quantity=quantity,
                    unit=line.unit,
                    unit_cost=unit_cost,
                    line_cost=(quantity * unit_cost).quantize(
                        UNIT_COST_QUANTUM, rounding=ROUND_HALF_UP
                    ),
                    category=node.category if node else IngredientCategory.OTHER.value,
                )
            )

        total = sum((line.line_cost for line in line_costs), ZERO)
        return RecipeCostSummary(
            total_recipe_cost=total.quantize(UNIT_COST_QUANTUM, rounding=ROUND_HALF_UP),
            lines=line_costs,
        )

    def _batch_cost_in_unit(self, node: IngredientNode, unit: str, visiting: frozenset) -> Decimal:
        per_yield_unit = self._batch_unit_cost(node.ingredient_id, visiting)
        if node.yield_unit and node.yield_unit != unit:
            factor = get_conversion_factor(node.yield_unit, unit)
            if factor:
                return per_yield_unit / factor
        # No conversion possible: assume the recipe uses the yield unit
        return per_yield_unit


def effective_unit_cost(node: IngredientNode, unit: str) -> Decimal:
    """
    Cost of one ``unit`` of a regular ingredient.

    Tries a standard conversion from the inventory unit first, then the
    stored conversion factor when ``unit`` is the ingredient's recipe unit,
    and otherwise assumes ``unit`` is the inventory unit.

    Examples:
        >>> node = IngredientNode("beef", unit_cost=Decimal("2"), inventory_unit="lb")
        >>> effective_unit_cost(node, "oz")
        Decimal('0.125')
    """
    base_unit_cost = node.unit_cost if node.unit_cost and node.unit_cost > 0 else ZERO
    if not node.inventory_unit:
        return base_unit_cost

    factor = get_conversion_factor(node.inventory_unit, unit)
    if factor:
        return base_unit_cost / factor

    if (
        node.recipe_unit
        and node.conversion_factor
        and node.conversion_factor > 0
        and unit == node.recipe_unit
    ):
        return base_unit_cost / node.conversion_factor

    return base_unit_cost
