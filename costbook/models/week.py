"""
Weekly operating cycle models.

This module contains:
- Week: the weekly period record and its draft/finalized status
- WeeklySales: seven day-keyed sales amounts for a week
- WeeklyInventoryEntry: begin/received/end counts per ingredient
- WeeklyCostSnapshotEntry: unit cost captured per ingredient at finalization
- WeekReport: the serialized cost-of-sales summary written at finalization

Cost snapshots and reports deliberately carry no foreign key to the
ingredient catalog: they record history as it was and must survive later
catalog edits or deletions.
"""

import json
from decimal import Decimal

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from costbook.utils.datetime_utils import utc_now

from .base import BaseModel
from .enums import WeekStatus


class Week(BaseModel):
    """
    Week model.

    Attributes:
        id: Period key (e.g., "2024-W05")
        status: "draft" or "finalized"; draft -> finalized happens once
        created_by: Identity of the creator, when known
        finalized_at: When the week was finalized
        finalized_by: Identity of the finalizer, when known
        version_counter: Optimistic concurrency counter managed by SQLAlchemy
    """

    __tablename__ = "weeks"

    id = Column(String(50), primary_key=True)
    status = Column(String(20), nullable=False, default=WeekStatus.DRAFT.value)
    created_by = Column(String(200), nullable=True)
    finalized_at = Column(DateTime(timezone=True), nullable=True)
    finalized_by = Column(String(200), nullable=True)

    version_counter = Column(Integer, nullable=False)

    sales = relationship(
        "WeeklySales", back_populates="week", uselist=False, cascade="all, delete-orphan"
    )
    inventory_entries = relationship(
        "WeeklyInventoryEntry",
        back_populates="week",
        cascade="all, delete-orphan",
        order_by="WeeklyInventoryEntry.ingredient_id",
    )
    cost_snapshot_entries = relationship(
        "WeeklyCostSnapshotEntry",
        back_populates="week",
        cascade="all, delete-orphan",
        order_by="WeeklyCostSnapshotEntry.ingredient_id",
    )
    report = relationship(
        "WeekReport", back_populates="week", uselist=False, cascade="all, delete-orphan"
    )

    __mapper_args__ = {"version_id_col": version_counter}

    __table_args__ = (Index("idx_week_status", "status"),)

    @property
    def is_draft(self) -> bool:
        """True while sales and inventory may still change."""
        return self.status == WeekStatus.DRAFT.value

    @property
    def is_finalized(self) -> bool:
        """True once the week's report is frozen."""
        return self.status == WeekStatus.FINALIZED.value

    def __repr__(self) -> str:
        """String representation of week."""
        return f"Week(id='{self.id}', status='{self.status}')"

    def to_dict(self, include_relationships: bool = False) -> dict:
        """Week as a dictionary, without the concurrency counter."""
        result = super().to_dict(include_relationships)
        result.pop("version_counter", None)
        return result


class WeeklySales(BaseModel):
    """
    Daily sales amounts for a week, one row per week.

    Attributes:
        week_id: Owning week
        mon..sun: Gross sales for each day (non-negative)
    """

    __tablename__ = "weekly_sales"

    week_id = Column(String(50), ForeignKey("weeks.id", ondelete="CASCADE"), primary_key=True)
    mon = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    tue = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    wed = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    thu = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    fri = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    sat = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    sun = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    week = relationship("Week", back_populates="sales")


class WeeklyInventoryEntry(BaseModel):
    """
    Inventory counts for one ingredient in one week.

    Attributes:
        week_id: Owning week
        ingredient_id: Counted ingredient (no FK; validated at finalization)
        begin: Quantity on hand at the start of the week
        received: Quantity received during the week
        end: Quantity on hand at the end of the week
    """

    __tablename__ = "weekly_inventory"

    week_id = Column(String(50), ForeignKey("weeks.id", ondelete="CASCADE"), primary_key=True)
    ingredient_id = Column(String(100), primary_key=True)
    begin = Column(Numeric(12, 4), nullable=False, default=Decimal("0"))
    received = Column(Numeric(12, 4), nullable=False, default=Decimal("0"))
    end = Column(Numeric(12, 4), nullable=False, default=Decimal("0"))

    week = relationship("Week", back_populates="inventory_entries")

    @property
    def usage(self) -> Decimal:
        """begin + received - end; negative results pass through unchanged."""
        return self.begin + self.received - self.end

    def to_dict(self, include_relationships: bool = False) -> dict:
        """Entry as {ingredient_id, begin, received, end}."""
        return {
            "ingredient_id": self.ingredient_id,
            "begin": self.begin,
            "received": self.received,
            "end": self.end,
        }


class WeeklyCostSnapshotEntry(BaseModel):
    """
    Unit cost of one ingredient as captured when its week was finalized.

    Attributes:
        week_id: Owning week
        ingredient_id: Ingredient the cost belongs to
        unit_cost: Unit cost at finalization time
        source_version_id: IngredientVersion the cost was read from
    """

    __tablename__ = "weekly_cost_snapshots"

    week_id = Column(String(50), ForeignKey("weeks.id", ondelete="CASCADE"), primary_key=True)
    ingredient_id = Column(String(100), primary_key=True)
    unit_cost = Column(Numeric(12, 4), nullable=False)
    source_version_id = Column(String(36), nullable=False)

    week = relationship("Week", back_populates="cost_snapshot_entries")

    def to_dict(self, include_relationships: bool = False) -> dict:
        """Entry as {ingredient_id, unit_cost, source_version_id}."""
        return {
            "ingredient_id": self.ingredient_id,
            "unit_cost": self.unit_cost,
            "source_version_id": self.source_version_id,
        }


class WeekReport(BaseModel):
    """
    The cost-of-sales summary for a finalized week.

    The summary is stored as JSON text with Decimal values serialized as
    strings, so the stored document is exact and never re-rounded.

    Attributes:
        week_id: Owning week (one report per week)
        computed_at: When the summary was computed
        summary_data: JSON document of the ReportSummary
    """

    __tablename__ = "week_reports"

    week_id = Column(String(50), ForeignKey("weeks.id", ondelete="CASCADE"), primary_key=True)
    computed_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    summary_data = Column(Text, nullable=False)

    week = relationship("Week", back_populates="report")

    def get_summary_data(self) -> dict:
        """
        Parse and return the stored summary document.

        Returns:
            Summary dictionary, or an empty dict if nothing is stored.
        """
        if not self.summary_data:
            return {}
        return json.loads(self.summary_data)
