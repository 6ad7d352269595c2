"""
Report computation for weekly cost of sales.

Transaction boundary: Pure computation (no database access). Everything in
this module takes plain values and returns plain values, so finalization can
call it inside a unit of work that may run more than once.

This module provides functions for:
- Computing per-ingredient cost of sales from usage and a captured unit cost
- Aggregating totals and per-ingredient cost share into a ReportSummary
- Serializing a ReportSummary to and from a JSON-safe dictionary
- Sales-side helpers: weekly gross sales, gross profit, gross margin and
  food cost percentage

Arithmetic is Decimal throughout. Totals are exact sums; only the cost share
(4 places) and the sales percentages (2 places) are rounded.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Union

from costbook.utils.constants import (
    COST_SHARE_QUANTUM,
    PERCENT_QUANTUM,
    SALES_DAYS,
    UNSPECIFIED_VERSION_ID,
)
from costbook.utils.datetime_utils import as_utc, to_iso, utc_now

Clock = Callable[[], datetime]
Amount = Union[Decimal, int, float, str, None]

ZERO = Decimal("0")
HUNDRED = Decimal("100")


# ============================================================================
# Data Classes
# ============================================================================


@dataclass(frozen=True)
class CostLine:
    """One ingredient's usage and the unit cost captured for it.

    Attributes:
        ingredient_id: Ingredient the line belongs to
        usage: begin + received - end (may be negative)
        unit_cost: Unit cost read at finalization
        source_version_id: IngredientVersion the unit cost came from
    """

    ingredient_id: str
    usage: Decimal
    unit_cost: Decimal
    source_version_id: str = UNSPECIFIED_VERSION_ID


@dataclass(frozen=True)
class CostOfSalesBreakdown:
    """Cost of sales for one ingredient."""

    ingredient_id: str
    usage: Decimal
    unit_cost: Decimal
    cost_of_sales: Decimal
    source_version_id: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "ingredient_id": self.ingredient_id,
            "usage": str(self.usage),
            "unit_cost": str(self.unit_cost),
            "cost_of_sales": str(self.cost_of_sales),
            "source_version_id": self.source_version_id,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "CostOfSalesBreakdown":
        return cls(
            ingredient_id=data["ingredient_id"],
            usage=Decimal(data["usage"]),
            unit_cost=Decimal(data["unit_cost"]),
            cost_of_sales=Decimal(data["cost_of_sales"]),
            source_version_id=data.get("source_version_id", UNSPECIFIED_VERSION_ID),
        )


@dataclass(frozen=True)
class ReportTotals:
    """Aggregate usage and cost of sales across all ingredients."""

    total_usage_units: Decimal
    total_cost_of_sales: Decimal


@dataclass(frozen=True)
class ReportSummary:
    """Cost-of-sales summary for one week.

    Attributes:
        computed_at: When the summary was computed (UTC)
        totals: Aggregate totals
        breakdown: Per-ingredient lines, in input order
        ingredient_cost_share: cost_of_sales_i / total_cost_of_sales per ingredient
    """

    computed_at: datetime
    totals: ReportTotals
    breakdown: List[CostOfSalesBreakdown] = field(default_factory=list)
    ingredient_cost_share: Dict[str, Decimal] = field(default_factory=dict)

    def get_line(self, ingredient_id: str) -> Optional[CostOfSalesBreakdown]:
        """Breakdown line for an ingredient, or None."""
        for line in self.breakdown:
            if line.ingredient_id == ingredient_id:
                return line
        return None

    def to_dict(self) -> Dict:
        """Convert summary to a JSON-safe dictionary (Decimals as strings)."""
        return {
            "computed_at": to_iso(self.computed_at),
            "totals": {
                "total_usage_units": str(self.totals.total_usage_units),
                "total_cost_of_sales": str(self.totals.total_cost_of_sales),
            },
            "percentages": {
                "ingredient_cost_share": {
                    ingredient_id: str(share)
                    for ingredient_id, share in self.ingredient_cost_share.items()
                },
            },
            "breakdown": [line.to_dict() for line in self.breakdown],
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "ReportSummary":
        """Rebuild a summary from the output of to_dict()."""
        totals = data.get("totals", {})
        shares = data.get("percentages", {}).get("ingredient_cost_share", {})
        return cls(
            computed_at=as_utc(datetime.fromisoformat(data["computed_at"])),
            totals=ReportTotals(
                total_usage_units=Decimal(totals.get("total_usage_units", "0")),
                total_cost_of_sales=Decimal(totals.get("total_cost_of_sales", "0")),
            ),
            breakdown=[CostOfSalesBreakdown.from_dict(line) for line in data.get("breakdown", [])],
            ingredient_cost_share={key: Decimal(value) for key, value in shares.items()},
        )


# ============================================================================
# Cost of Sales
# ============================================================================


def compute_usage(begin: Decimal, received: Decimal, end: Decimal) -> Decimal:
    """Inventory consumed during the week.

    Negative results (more counted at the end than was available) are
    returned unchanged so count errors stay visible in the report.

    Examples:
        >>> compute_usage(Decimal("10"), Decimal("5"), Decimal("3"))
        Decimal('12')
    """
    return begin + received - end


def compute_cost_of_sales(lines: Iterable[CostLine]) -> List[CostOfSalesBreakdown]:
    """Multiply usage by unit cost for each line, preserving input order."""
    return [
        CostOfSalesBreakdown(
            ingredient_id=line.ingredient_id,
            usage=line.usage,
            unit_cost=line.unit_cost,
            cost_of_sales=line.usage * line.unit_cost,
            source_version_id=line.source_version_id or UNSPECIFIED_VERSION_ID,
        )
        for line in lines
    ]


def compute_cost_share(cost_of_sales: Decimal, total_cost_of_sales: Decimal) -> Decimal:
    """Fraction of the week's cost of sales, to 4 places; 0 when the total is 0."""
    if total_cost_of_sales == 0:
        return ZERO
    return (cost_of_sales / total_cost_of_sales).quantize(COST_SHARE_QUANTUM, rounding=ROUND_HALF_UP)


def compute_report_summary(
    lines: Iterable[CostLine], now: Optional[Clock] = None
) -> ReportSummary:
    """
    Build the week's report summary.

    Args:
        lines: One CostLine per counted ingredient
        now: Clock used for computed_at (defaults to utc_now)

    Returns:
        ReportSummary with exact totals

    Example:
        >>> summary = compute_report_summary(
        ...     [CostLine("cheese", Decimal("12"), Decimal("3.0000"), "v1")]
        ... )
        >>> summary.totals.total_cost_of_sales
        Decimal('36.0000')
    """
    clock = now or utc_now
    breakdown = compute_cost_of_sales(lines)

    total_cost_of_sales = sum((line.cost_of_sales for line in breakdown), ZERO)
    total_usage_units = sum((line.usage for line in breakdown), ZERO)

    ingredient_cost_share = {
        line.ingredient_id: compute_cost_share(line.cost_of_sales, total_cost_of_sales)
        for line in breakdown
    }

    return ReportSummary(
        computed_at=as_utc(clock()),
        totals=ReportTotals(
            total_usage_units=total_usage_units,
            total_cost_of_sales=total_cost_of_sales,
        ),
        breakdown=breakdown,
        ingredient_cost_share=ingredient_cost_share,
    )


# ============================================================================
# Sales Helpers
# ============================================================================


def _non_negative(value: Amount) -> Decimal:
    """Coerce to a finite, non-negative Decimal; anything else becomes 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return ZERO
    if not amount.is_finite() or amount < 0:
        return ZERO
    return amount


def weekly_sales_total(sales: Mapping[str, Amount]) -> Decimal:
    """Gross sales for the week: the sum of the seven daily amounts."""
    return sum((_non_negative(sales.get(day)) for day in SALES_DAYS), ZERO)


def calculate_gross_profit(gross_sales: Amount, cost_of_sales: Amount) -> Decimal:
    """Gross sales minus cost of sales, to 2 places.

    Examples:
        >>> calculate_gross_profit(Decimal("1000"), Decimal("300"))
        Decimal('700.00')
    """
    profit = _non_negative(gross_sales) - _non_negative(cost_of_sales)
    return profit.quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)


def calculate_gross_margin(gross_sales: Amount, cost_of_sales: Amount) -> Decimal:
    """Gross profit as a percentage of gross sales, to 2 places; 0 with no sales."""
    sales = _non_negative(gross_sales)
    if sales == 0:
        return ZERO
    margin = (sales - _non_negative(cost_of_sales)) / sales * HUNDRED
    return margin.quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)


def calculate_food_cost_percentage(cost: Amount, price: Amount) -> Decimal:
    """Cost as a percentage of a price or of gross sales, to 2 places.

    Returns 0 when the price is zero or either input is invalid.

    Examples:
        >>> calculate_food_cost_percentage(Decimal("2.50"), Decimal("10.00"))
        Decimal('25.00')
    """
    price_value = _non_negative(price)
    if price_value == 0:
        return ZERO
    percentage = _non_negative(cost) / price_value * HUNDRED
    return percentage.quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)
