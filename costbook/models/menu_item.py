"""
MenuItem and RecipeLine models.

A menu item is a sellable product; its recipe is the set of RecipeLine rows
that say how much of each ingredient goes into one serving. Recipes are pure
data association: nothing here computes cost.
"""

from sqlalchemy import Boolean, Column, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import relationship

from .base import BaseModel


class MenuItem(BaseModel):
    """
    Menu item model.

    Attributes:
        id: String key (caller supplied or slug of the name)
        name: Display name (e.g., "Street Taco")
        is_active: Whether the item is currently sold
        selling_price: Optional menu price, used for food cost percentage
    """

    __tablename__ = "menu_items"

    id = Column(String(100), primary_key=True)
    name = Column(String(200), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    selling_price = Column(Numeric(10, 2), nullable=True)

    recipe_lines = relationship(
        "RecipeLine",
        back_populates="menu_item",
        cascade="all, delete-orphan",
        order_by="RecipeLine.id",
        lazy="select",
    )

    def __repr__(self) -> str:
        """String representation of menu item."""
        return f"MenuItem(id='{self.id}', name='{self.name}')"


class RecipeLine(BaseModel):
    """
    One ingredient line of a menu item's recipe.

    Attributes:
        menu_item_id: Owning menu item
        id: Line id, unique within the menu item
        ingredient_id: Referenced ingredient
        quantity: Amount per serving
        unit: Unit of quantity (may differ from the ingredient's inventory unit)
    """

    __tablename__ = "recipe_lines"

    menu_item_id = Column(
        String(100), ForeignKey("menu_items.id", ondelete="CASCADE"), primary_key=True
    )
    id = Column(String(100), primary_key=True)
    ingredient_id = Column(
        String(100), ForeignKey("ingredients.id", ondelete="RESTRICT"), nullable=False
    )
    quantity = Column(Numeric(12, 4), nullable=False)
    unit = Column(String(50), nullable=False)

    menu_item = relationship("MenuItem", back_populates="recipe_lines")
    ingredient = relationship("Ingredient")

    __table_args__ = (Index("idx_recipe_line_ingredient", "ingredient_id"),)

    def to_dict(self, include_relationships: bool = False) -> dict:
        """Recipe line as {id, ingredient_id, quantity, unit}."""
        return {
            "id": self.id,
            "ingredient_id": self.ingredient_id,
            "quantity": self.quantity,
            "unit": self.unit,
        }
