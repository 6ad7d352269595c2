"""
Ingredient catalog models.

This module contains:
- Ingredient: catalog entry with its current derived unit cost
- IngredientVersion: effective-dated price history row
- BatchRecipeLine: a batch ingredient's own recipe line

Price history is append-only. Every price change closes the open
IngredientVersion and opens a new one; ``Ingredient.unit_cost`` and
``Ingredient.current_version_id`` always mirror the open version.
"""

from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from costbook.utils.datetime_utils import utc_now

from .base import BaseModel
from .enums import IngredientCategory


class Ingredient(BaseModel):
    """
    Ingredient model representing a purchasable (or batch-prepared) ingredient.

    Attributes:
        id: String key (caller supplied or slug of the name)
        name: Display name (e.g., "Shredded Cheese")
        inventory_unit: Unit inventory is counted in (e.g., "lb")
        recipe_unit: Optional unit recipes use (e.g., "oz")
        conversion_factor: recipe units per inventory unit, when derivable
        units_per_case: Inventory units in one purchased case
        case_price: Price of one case
        unit_cost: case_price / units_per_case at 4 places (0 for batch ingredients)
        is_active: Whether the ingredient is offered for new weeks
        category: "food", "paper" or "other"
        current_version_id: Pointer to the open IngredientVersion
        is_batch: True when the ingredient is prepared in-house from a recipe
        yield_quantity: Quantity one batch produces
        yield_unit: Unit of yield_quantity
        version_counter: Optimistic concurrency counter managed by SQLAlchemy

    Note:
        unit_cost is only ever written together with a new version.
    """

    __tablename__ = "ingredients"

    id = Column(String(100), primary_key=True)

    name = Column(String(200), nullable=False, index=True)
    inventory_unit = Column(String(50), nullable=False, default="unit")
    recipe_unit = Column(String(50), nullable=True)
    conversion_factor = Column(Numeric(14, 6), nullable=True)

    units_per_case = Column(Numeric(12, 4), nullable=False)
    case_price = Column(Numeric(12, 4), nullable=False, default=Decimal("0"))
    unit_cost = Column(Numeric(12, 4), nullable=False, default=Decimal("0.0000"))

    is_active = Column(Boolean, nullable=False, default=True)
    category = Column(String(50), nullable=False, default=IngredientCategory.FOOD.value)

    # Plain pointer, not a foreign key: versions reference ingredients, so a
    # second FK in the other direction would make the rows mutually dependent.
    current_version_id = Column(String(36), nullable=True)

    is_batch = Column(Boolean, nullable=False, default=False)
    yield_quantity = Column(Numeric(12, 4), nullable=True)
    yield_unit = Column(String(50), nullable=True)

    version_counter = Column(Integer, nullable=False)

    versions = relationship(
        "IngredientVersion",
        back_populates="ingredient",
        cascade="all, delete-orphan",
        order_by="IngredientVersion.sequence",
        lazy="select",
    )
    batch_lines = relationship(
        "BatchRecipeLine",
        back_populates="batch_ingredient",
        cascade="all, delete-orphan",
        foreign_keys="BatchRecipeLine.batch_ingredient_id",
        order_by="BatchRecipeLine.position",
        lazy="select",
    )

    __mapper_args__ = {"version_id_col": version_counter}

    __table_args__ = (
        Index("idx_ingredient_active", "is_active"),
        Index("idx_ingredient_category", "category"),
    )

    def __repr__(self) -> str:
        """String representation of ingredient."""
        return (
            f"Ingredient(id='{self.id}', name='{self.name}', "
            f"unit_cost={self.unit_cost}, current_version_id='{self.current_version_id}')"
        )

    def get_open_version(self):
        """
        Return the currently open version, or None before the first one exists.

        Returns:
            IngredientVersion whose effective_to is None
        """
        for version in self.versions:
            if version.effective_to is None:
                return version
        return None

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert ingredient to dictionary.

        Batch recipe lines are always included because they are part of the
        ingredient's definition rather than a separate resource.
        """
        result = super().to_dict(include_relationships)
        result.pop("version_counter", None)
        result["batch_lines"] = [line.to_dict() for line in self.batch_lines] if self.is_batch else []
        return result


class IngredientVersion(BaseModel):
    """
    Effective-dated pricing for an ingredient.

    A version is valid over ``[effective_from, effective_to)``; effective_to of
    None marks the open version. Closed versions are never modified again.

    Attributes:
        id: Version id (uuid4 string)
        ingredient_id: Owning ingredient
        sequence: 1-based position in the ingredient's history
        case_price: Case price in effect
        units_per_case: Units per case in effect
        unit_cost: Derived unit cost in effect
        effective_from: When this version opened
        effective_to: When this version closed (None while open)
    """

    __tablename__ = "ingredient_versions"

    id = Column(String(36), primary_key=True)
    ingredient_id = Column(
        String(100), ForeignKey("ingredients.id", ondelete="CASCADE"), nullable=False
    )
    sequence = Column(Integer, nullable=False)

    case_price = Column(Numeric(12, 4), nullable=False)
    units_per_case = Column(Numeric(12, 4), nullable=False)
    unit_cost = Column(Numeric(12, 4), nullable=False)

    effective_from = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    effective_to = Column(DateTime(timezone=True), nullable=True)

    ingredient = relationship("Ingredient", back_populates="versions")

    __table_args__ = (
        UniqueConstraint("ingredient_id", "sequence", name="uq_ingredient_version_sequence"),
        Index("idx_ingredient_version_ingredient", "ingredient_id"),
        Index("idx_ingredient_version_effective_from", "effective_from"),
    )

    @property
    def is_open(self) -> bool:
        """True for the ingredient's current version."""
        return self.effective_to is None

    def __repr__(self) -> str:
        """String representation of version."""
        return (
            f"IngredientVersion(id='{self.id}', ingredient_id='{self.ingredient_id}', "
            f"sequence={self.sequence}, unit_cost={self.unit_cost})"
        )


class BatchRecipeLine(BaseModel):
    """
    One line of a batch ingredient's recipe.

    Lines reference other ingredients, which may themselves be batch
    ingredients. The service layer rejects any set of lines that would close
    a reference cycle.

    Attributes:
        batch_ingredient_id: The batch ingredient that owns this line
        position: Order of the line within the recipe
        line_id: Caller-visible id of the line
        ingredient_id: Referenced component ingredient
        quantity: Amount of the component per batch
        unit: Unit of quantity
    """

    __tablename__ = "batch_recipe_lines"

    batch_ingredient_id = Column(
        String(100), ForeignKey("ingredients.id", ondelete="CASCADE"), primary_key=True
    )
    position = Column(Integer, primary_key=True)
    line_id = Column(String(100), nullable=False)
    ingredient_id = Column(
        String(100), ForeignKey("ingredients.id", ondelete="RESTRICT"), nullable=False
    )
    quantity = Column(Numeric(12, 4), nullable=False)
    unit = Column(String(50), nullable=False)

    batch_ingredient = relationship(
        "Ingredient", back_populates="batch_lines", foreign_keys=[batch_ingredient_id]
    )
    component = relationship("Ingredient", foreign_keys=[ingredient_id])

    __table_args__ = (Index("idx_batch_recipe_line_component", "ingredient_id"),)

    def to_dict(self, include_relationships: bool = False) -> dict:
        """Recipe line as {id, ingredient_id, quantity, unit}."""
        return {
            "id": self.line_id,
            "ingredient_id": self.ingredient_id,
            "quantity": self.quantity,
            "unit": self.unit,
        }
