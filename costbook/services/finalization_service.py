"""
Finalization Service - turns a draft week into an immutable cost report.

Transaction boundary: ``finalize_week`` is ONE retryable unit of work.

1. Load the week: it must exist and still be a draft.
2. Claim it: set status, finalized_at and finalized_by, then flush. The
   flush is a versioned UPDATE of the week row, so a finalizer that lost
   the race fails here with StaleDataError, and on SQLite it takes the
   write lock, so no price change can commit while the rest of the unit
   of work reads the catalog.
3. Load the inventory entries; an empty set is a ValidationError.
4. Read each counted ingredient's unit_cost and current_version_id.
5. Compute usage and cost of sales per ingredient and aggregate them.
6. Replace the week's cost snapshot rows and write the report.
7. Commit and return the summary.

Any failure rolls the whole unit back, including the claim, so a rejected
finalization leaves the week a draft with no report and no snapshot. A
retried attempt starts again from step 1 and, if another caller won,
fails with WeekAlreadyFinalizedError.

Usage is not clamped: an end count above begin + received produces negative
usage and a negative cost line, which keeps count errors visible.
"""

import json
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from costbook.models import (
    Ingredient,
    Week,
    WeeklyCostSnapshotEntry,
    WeeklyInventoryEntry,
    WeekReport,
    WeekStatus,
)
from costbook.utils.constants import UNSPECIFIED_VERSION_ID
from costbook.utils.datetime_utils import as_utc, utc_now

from .database import Database
from .exceptions import (
    IngredientNotFound,
    NoInventoryDataError,
    ServiceError,
    WeekAlreadyFinalizedError,
    WeekNotFound,
)
from .logging_utils import get_service_logger, log_operation
from .report_computation import CostLine, ReportSummary, compute_report_summary, compute_usage

logger = get_service_logger(__name__)


def _load_week(session: Session, week_id: str) -> Week:
    week = session.get(Week, week_id)
    if week is None:
        raise WeekNotFound(week_id)
    if week.is_finalized:
        raise WeekAlreadyFinalizedError(week_id)
    return week


def _claim_week(
    session: Session, week: Week, finalized_by: Optional[str], finalized_at: datetime
) -> None:
    week.status = WeekStatus.FINALIZED.value
    week.finalized_at = finalized_at
    week.finalized_by = finalized_by
    session.flush()


def _load_inventory(session: Session, week_id: str) -> List[WeeklyInventoryEntry]:
    entries = (
        session.query(WeeklyInventoryEntry)
        .filter(WeeklyInventoryEntry.week_id == week_id)
        .order_by(WeeklyInventoryEntry.ingredient_id)
        .all()
    )
    if not entries:
        raise NoInventoryDataError(week_id)
    return entries


def _read_cost_lines(session: Session, entries: List[WeeklyInventoryEntry]) -> List[CostLine]:
    """Pair each inventory entry with its ingredient's current cost and version."""
    ingredient_ids = [entry.ingredient_id for entry in entries]
    ingredients: Dict[str, Ingredient] = {
        ingredient.id: ingredient
        for ingredient in session.query(Ingredient).filter(Ingredient.id.in_(ingredient_ids))
    }

    lines = []
    for entry in entries:
        ingredient = ingredients.get(entry.ingredient_id)
        if ingredient is None:
            raise IngredientNotFound(entry.ingredient_id)
        lines.append(
            CostLine(
                ingredient_id=entry.ingredient_id,
                usage=compute_usage(entry.begin, entry.received, entry.end),
                unit_cost=ingredient.unit_cost,
                source_version_id=ingredient.current_version_id or UNSPECIFIED_VERSION_ID,
            )
        )
    return lines


def _write_snapshots(session: Session, week: Week, lines: List[CostLine]) -> None:
    """Make the week's snapshot rows exactly one per costed ingredient."""
    current_ids = {line.ingredient_id for line in lines}
    existing = {entry.ingredient_id: entry for entry in week.cost_snapshot_entries}

    for ingredient_id, entry in existing.items():
        if ingredient_id not in current_ids:
            week.cost_snapshot_entries.remove(entry)

    for line in lines:
        entry = existing.get(line.ingredient_id)
        if entry is None:
            week.cost_snapshot_entries.append(
                WeeklyCostSnapshotEntry(
                    ingredient_id=line.ingredient_id,
                    unit_cost=line.unit_cost,
                    source_version_id=line.source_version_id,
                )
            )
        else:
            entry.unit_cost = line.unit_cost
            entry.source_version_id = line.source_version_id


def _write_report(week: Week, summary: ReportSummary) -> None:
    summary_data = json.dumps(summary.to_dict(), sort_keys=True)
    if week.report is None:
        week.report = WeekReport(computed_at=summary.computed_at, summary_data=summary_data)
    else:
        week.report.computed_at = summary.computed_at
        week.report.summary_data = summary_data


def finalize_week(
    db: Database,
    week_id: str,
    finalized_by: Optional[str] = None,
    now: Optional[Callable[[], datetime]] = None,
) -> ReportSummary:
    """
    Finalize a week: snapshot unit costs, write the report, close the week.

    Args:
        db: Database handle
        week_id: Week to finalize
        finalized_by: Identity recorded on the week
        now: Clock for finalized_at and computed_at (defaults to utc_now)

    Returns:
        The computed ReportSummary

    Raises:
        WeekNotFound: If the week doesn't exist
        WeekAlreadyFinalizedError: If the week is already finalized
        NoInventoryDataError: If the week has no inventory entries
        IngredientNotFound: If a counted ingredient no longer exists
        TransientError: If every attempt lost a concurrency race

    Example:
        >>> summary = finalize_week(db, "2024-W05", finalized_by="manager")
        >>> summary.totals.total_cost_of_sales
        Decimal('36.00000000')
    """
    clock = now or utc_now

    def work(session: Session) -> ReportSummary:
        week = _load_week(session, week_id)
        finalized_at = as_utc(clock())
        _claim_week(session, week, finalized_by, finalized_at)

        entries = _load_inventory(session, week_id)
        lines = _read_cost_lines(session, entries)
        summary = compute_report_summary(lines, now=lambda: finalized_at)

        _write_snapshots(session, week, lines)
        _write_report(week, summary)
        session.flush()
        return summary

    try:
        summary = db.run_in_transaction(work, operation="finalize_week")
    except ServiceError as e:
        log_operation(
            logger,
            operation="finalize_week",
            outcome="rejected",
            level=logging.WARNING,
            week_id=week_id,
            error=str(e),
        )
        raise

    log_operation(
        logger,
        operation="finalize_week",
        outcome="success",
        week_id=week_id,
        finalized_by=finalized_by,
        ingredient_count=len(summary.breakdown),
        total_cost_of_sales=str(summary.totals.total_cost_of_sales),
    )
    return summary
