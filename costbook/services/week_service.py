"""
Week Service - the weekly operating cycle.

This service provides:
- Week creation, seeded with zero sales and optional zero inventory entries
- Merge-writes of daily sales and per-ingredient inventory counts
- Reads of weeks, sales, inventory, cost snapshots and reports
- Sales-side figures for a finalized week (gross sales, profit, margin)

Sales and inventory only change while a week is a draft. Every write checks
the week's status itself and also bumps the week's row version, so a write
racing a finalization either lands before it or is re-run and refused.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from costbook.models import (
    Week,
    WeeklyCostSnapshotEntry,
    WeeklyInventoryEntry,
    WeeklySales,
    WeekStatus,
)
from costbook.utils.constants import INVENTORY_FIELDS, SALES_DAYS
from costbook.utils.datetime_utils import utc_now
from costbook.utils.validators import (
    validate_non_negative_number,
    validate_required_string,
    validate_string_length,
)

from .database import Database, is_unique_violation
from .dto_utils import to_decimal
from .exceptions import ValidationError, WeekAlreadyExists, WeekNotDraftError, WeekNotFound
from .logging_utils import get_service_logger, log_operation
from .report_computation import (
    ReportSummary,
    calculate_food_cost_percentage,
    calculate_gross_margin,
    calculate_gross_profit,
    weekly_sales_total,
)

logger = get_service_logger(__name__)

MAX_WEEK_ID_LENGTH = 50


# ============================================================================
# Helpers
# ============================================================================


def _get_week(session: Session, week_id: str) -> Week:
    week = session.get(Week, week_id)
    if week is None:
        raise WeekNotFound(week_id)
    return week


def _get_draft_week(session: Session, week_id: str) -> Week:
    """
    Load a week that may still be edited and claim its row version.

    Touching ``updated_at`` makes the flush issue a versioned UPDATE, so a
    finalization committed after this read fails the write with
    StaleDataError instead of letting it land on a finalized week.
    """
    week = _get_week(session, week_id)
    if not week.is_draft:
        raise WeekNotDraftError(week_id, week.status)
    week.updated_at = utc_now()
    return week


def _sales_to_dict(sales: Optional[WeeklySales]) -> Dict[str, Any]:
    return {day: getattr(sales, day) if sales is not None else to_decimal(0) for day in SALES_DAYS}


def _entry_to_dict(entry: WeeklyInventoryEntry) -> Dict[str, Any]:
    result = entry.to_dict()
    result["usage"] = entry.usage
    return result


def _validate_sales(sales: Mapping[str, Any]) -> None:
    errors = []
    for day, amount in sales.items():
        if day not in SALES_DAYS:
            errors.append(f"{day}: Unknown day (expected one of {', '.join(SALES_DAYS)})")
            continue
        is_valid, error = validate_non_negative_number(amount, day)
        if not is_valid:
            errors.append(error)
    if errors:
        raise ValidationError(errors)


def _validate_inventory(entries: Iterable[Mapping[str, Any]]) -> None:
    errors = []
    for index, entry in enumerate(entries, start=1):
        is_valid, error = validate_required_string(entry.get("ingredient_id"), f"Entry {index} ingredient")
        if not is_valid:
            errors.append(error)
        for field in INVENTORY_FIELDS:
            if entry.get(field) is None:
                continue
            is_valid, error = validate_non_negative_number(entry[field], f"Entry {index} {field}")
            if not is_valid:
                errors.append(error)
    if errors:
        raise ValidationError(errors)


# ============================================================================
# Week Lifecycle
# ============================================================================


def create_week(
    db: Database,
    week_id: str,
    ingredient_ids: Optional[Iterable[str]] = None,
    created_by: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create a draft week.

    The week gets a sales row with every day at zero and, for each given
    ingredient, an inventory entry with begin, received and end at zero.

    Args:
        db: Database handle
        week_id: Period key (e.g., "2024-W05")
        ingredient_ids: Ingredients to seed inventory entries for
        created_by: Identity of the creator

    Returns:
        The week as a dictionary

    Raises:
        ValidationError: If week_id is empty or too long
        WeekAlreadyExists: If the week already exists
    """
    errors = []
    for is_valid, error in (
        validate_required_string(week_id, "Week id"),
        validate_string_length(week_id or "", MAX_WEEK_ID_LENGTH, "Week id"),
    ):
        if not is_valid:
            errors.append(error)
    if errors:
        raise ValidationError(errors)

    seed_ids = list(dict.fromkeys(ingredient_ids or []))

    def work(session: Session) -> Dict[str, Any]:
        if session.get(Week, week_id) is not None:
            raise WeekAlreadyExists(week_id)

        week = Week(id=week_id, status=WeekStatus.DRAFT.value, created_by=created_by)
        week.sales = WeeklySales(**{day: to_decimal(0) for day in SALES_DAYS})
        week.inventory_entries = [
            WeeklyInventoryEntry(
                ingredient_id=ingredient_id,
                begin=to_decimal(0),
                received=to_decimal(0),
                end=to_decimal(0),
            )
            for ingredient_id in seed_ids
        ]
        session.add(week)
        # A concurrent create can commit the same id after the check above
        try:
            session.flush()
        except IntegrityError as e:
            if is_unique_violation(e, "weeks.id"):
                raise WeekAlreadyExists(week_id) from e
            raise
        return week.to_dict()

    result = db.run_in_transaction(work, operation="create_week")
    log_operation(
        logger,
        operation="create_week",
        outcome="success",
        week_id=week_id,
        seeded_ingredients=len(seed_ids),
    )
    return result


def save_week_sales(db: Database, week_id: str, sales: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Merge daily sales amounts into a draft week.

    Only the days present in ``sales`` change.

    Args:
        db: Database handle
        week_id: Week to update
        sales: Mapping of day key ("mon".."sun") to a non-negative amount

    Returns:
        All seven days after the merge

    Raises:
        ValidationError: For unknown days or negative amounts
        WeekNotFound: If the week doesn't exist
        WeekNotDraftError: If the week is finalized
    """
    _validate_sales(sales)
    amounts = {day: to_decimal(amount, day) for day, amount in sales.items()}

    def work(session: Session) -> Dict[str, Any]:
        week = _get_draft_week(session, week_id)
        if week.sales is None:
            week.sales = WeeklySales(**{day: to_decimal(0) for day in SALES_DAYS})
        for day, amount in amounts.items():
            setattr(week.sales, day, amount)
        session.flush()
        return _sales_to_dict(week.sales)

    result = db.run_in_transaction(work, operation="save_week_sales")
    log_operation(
        logger, operation="save_week_sales", outcome="success", week_id=week_id, days=sorted(amounts)
    )
    return result


def save_week_inventory(
    db: Database, week_id: str, entries: Iterable[Mapping[str, Any]]
) -> List[Dict[str, Any]]:
    """
    Merge inventory counts into a draft week.

    Each entry names an ingredient_id and any of begin, received, end.
    Omitted fields keep their current value (zero for a new entry);
    ingredients not mentioned are left alone.

    Returns:
        Every inventory entry of the week after the merge

    Raises:
        ValidationError: For missing ingredient ids or negative quantities
        WeekNotFound: If the week doesn't exist
        WeekNotDraftError: If the week is finalized
    """
    entries = list(entries)
    _validate_inventory(entries)

    def work(session: Session) -> List[Dict[str, Any]]:
        week = _get_draft_week(session, week_id)
        existing = {entry.ingredient_id: entry for entry in week.inventory_entries}

        for data in entries:
            entry = existing.get(data["ingredient_id"])
            if entry is None:
                entry = WeeklyInventoryEntry(
                    ingredient_id=data["ingredient_id"],
                    begin=to_decimal(0),
                    received=to_decimal(0),
                    end=to_decimal(0),
                )
                week.inventory_entries.append(entry)
                existing[entry.ingredient_id] = entry
            for field in INVENTORY_FIELDS:
                if data.get(field) is not None:
                    setattr(entry, field, to_decimal(data[field], field))

        session.flush()
        return [_entry_to_dict(entry) for entry in sorted(existing.values(), key=lambda e: e.ingredient_id)]

    result = db.run_in_transaction(work, operation="save_week_inventory")
    log_operation(
        logger,
        operation="save_week_inventory",
        outcome="success",
        week_id=week_id,
        entry_count=len(entries),
    )
    return result


# ============================================================================
# Reads
# ============================================================================


def get_week(db: Database, week_id: str) -> Dict[str, Any]:
    """
    Retrieve a week by id.

    Raises:
        WeekNotFound: If the week doesn't exist
    """
    with db.session_scope() as session:
        return _get_week(session, week_id).to_dict()


def list_weeks(db: Database) -> List[Dict[str, Any]]:
    """All weeks, newest first."""
    with db.session_scope() as session:
        weeks = session.query(Week).order_by(Week.created_at.desc(), Week.id.desc()).all()
        return [week.to_dict() for week in weeks]


def list_draft_weeks(db: Database) -> List[Dict[str, Any]]:
    """Weeks that still accept sales and inventory, newest first."""
    with db.session_scope() as session:
        weeks = (
            session.query(Week)
            .filter(Week.status == WeekStatus.DRAFT.value)
            .order_by(Week.created_at.desc(), Week.id.desc())
            .all()
        )
        return [week.to_dict() for week in weeks]


def get_week_sales(db: Database, week_id: str) -> Dict[str, Any]:
    """
    Daily sales of a week keyed "mon".."sun".

    Raises:
        WeekNotFound: If the week doesn't exist
    """
    with db.session_scope() as session:
        return _sales_to_dict(_get_week(session, week_id).sales)


def get_week_inventory(db: Database, week_id: str) -> List[Dict[str, Any]]:
    """
    Inventory entries of a week ordered by ingredient id, each with its usage.

    Raises:
        WeekNotFound: If the week doesn't exist
    """
    with db.session_scope() as session:
        return [_entry_to_dict(entry) for entry in _get_week(session, week_id).inventory_entries]


def get_cost_snapshots(db: Database, week_id: str) -> List[Dict[str, Any]]:
    """
    Unit costs captured when the week was finalized (empty for a draft).

    Raises:
        WeekNotFound: If the week doesn't exist
    """
    with db.session_scope() as session:
        _get_week(session, week_id)
        snapshots = (
            session.query(WeeklyCostSnapshotEntry)
            .filter(WeeklyCostSnapshotEntry.week_id == week_id)
            .order_by(WeeklyCostSnapshotEntry.ingredient_id)
            .all()
        )
        return [snapshot.to_dict() for snapshot in snapshots]


def get_week_report(db: Database, week_id: str) -> Optional[ReportSummary]:
    """
    The stored report of a finalized week, or None for a draft.

    Raises:
        WeekNotFound: If the week doesn't exist
    """
    with db.session_scope() as session:
        week = _get_week(session, week_id)
        if week.report is None:
            return None
        return ReportSummary.from_dict(week.report.get_summary_data())


def get_week_financials(db: Database, week_id: str) -> Dict[str, Any]:
    """
    Sales-side figures for a week.

    Cost-dependent figures are None until the week is finalized.

    Returns:
        Dictionary with gross_sales, total_cost_of_sales, gross_profit,
        gross_margin and food_cost_percentage

    Raises:
        WeekNotFound: If the week doesn't exist
    """
    sales = get_week_sales(db, week_id)
    report = get_week_report(db, week_id)
    gross_sales = weekly_sales_total(sales)

    if report is None:
        return {
            "week_id": week_id,
            "gross_sales": gross_sales,
            "total_cost_of_sales": None,
            "gross_profit": None,
            "gross_margin": None,
            "food_cost_percentage": None,
        }

    cost = report.totals.total_cost_of_sales
    return {
        "week_id": week_id,
        "gross_sales": gross_sales,
        "total_cost_of_sales": cost,
        "gross_profit": calculate_gross_profit(gross_sales, cost),
        "gross_margin": calculate_gross_margin(gross_sales, cost),
        "food_cost_percentage": calculate_food_cost_percentage(cost, gross_sales),
    }
