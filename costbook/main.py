"""
Command line entry point for Costbook.

Simple command-line interface for the weekly cycle. No UI required -
designed for scripting and for closing out a week from a terminal.

Usage Examples:
    # Create the database and tables
    costbook init-db

    # Add an ingredient, open a week seeded with every active ingredient
    costbook add-ingredient cheese "Shredded Cheese" --unit lb --units-per-case 10 --case-price 30
    costbook create-week 2024-W05 --seed-active

    # Record counts and sales
    costbook set-inventory 2024-W05 cheese --begin 10 --received 5 --end 3
    costbook set-sales 2024-W05 --mon 1000

    # Finalize it
    costbook finalize-week 2024-W05 --by manager

    # Show the stored report (or the raw JSON document)
    costbook show-report 2024-W05
    costbook show-report 2024-W05 --json
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from costbook.services import finalization_service, ingredient_service, week_service
from costbook.services.database import Database, initialize_app_database
from costbook.services.dto_utils import cost_to_string
from costbook.services.exceptions import ServiceError
from costbook.utils.config import Config, get_config
from costbook.utils.constants import INVENTORY_FIELDS, SALES_DAYS


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _format_quantity(value) -> str:
    """Plain decimal form without trailing zeros or exponent (10, 12.5)."""
    return f"{value.normalize():f}"


def init_db_cmd(db: Database) -> int:
    """Create tables (already done on open) and report where the database lives."""
    print(f"Database ready at {db.database_url}")
    return 0


def create_week_cmd(
    db: Database, week_id: str, seed_active: bool, ingredient_ids: List[str], created_by: Optional[str]
) -> int:
    """Create a draft week."""
    seed_ids = list(ingredient_ids)
    if seed_active:
        seed_ids.extend(ingredient_service.get_active_ingredient_ids(db))

    week = week_service.create_week(db, week_id, ingredient_ids=seed_ids, created_by=created_by)
    print(f"Created week {week['id']} ({week['status']}) with {len(set(seed_ids))} inventory entries")
    return 0


def add_ingredient_cmd(
    db: Database,
    ingredient_id: str,
    name: str,
    inventory_unit: str,
    units_per_case: str,
    case_price: str,
    category: Optional[str],
) -> int:
    """Add a regular ingredient to the catalog with its first price version."""
    data = {
        "id": ingredient_id,
        "name": name,
        "inventory_unit": inventory_unit,
        "units_per_case": units_per_case,
        "case_price": case_price,
    }
    if category:
        data["category"] = category

    ingredient = ingredient_service.create_ingredient(db, data)
    print(f"Added {ingredient['id']} at {ingredient['unit_cost']} per {ingredient['inventory_unit']}")
    return 0


def set_inventory_cmd(db: Database, week_id: str, ingredient_id: str, counts: dict) -> int:
    """Record begin/received/end counts for one ingredient of a draft week."""
    entry = {"ingredient_id": ingredient_id}
    entry.update({field: value for field, value in counts.items() if value is not None})

    entries = week_service.save_week_inventory(db, week_id, [entry])
    saved = next(item for item in entries if item["ingredient_id"] == ingredient_id)
    print(
        f"{week_id} {ingredient_id}: begin {_format_quantity(saved['begin'])}, "
        f"received {_format_quantity(saved['received'])}, end {_format_quantity(saved['end'])}"
    )
    return 0


def set_sales_cmd(db: Database, week_id: str, amounts: dict) -> int:
    """Record daily sales amounts for a draft week."""
    sales = {day: value for day, value in amounts.items() if value is not None}
    if not sales:
        print("Nothing to record: give at least one day, e.g. --mon 1200")
        return 1

    saved = week_service.save_week_sales(db, week_id, sales)
    print(f"{week_id} sales: " + ", ".join(f"{day} {cost_to_string(saved[day])}" for day in SALES_DAYS))
    return 0


def finalize_week_cmd(db: Database, week_id: str, finalized_by: Optional[str]) -> int:
    """Finalize a week and print its totals."""
    summary = finalization_service.finalize_week(db, week_id, finalized_by=finalized_by)
    print(f"Finalized week {week_id}")
    print(f"  Ingredients costed: {len(summary.breakdown)}")
    print(f"  Total usage units:  {_format_quantity(summary.totals.total_usage_units)}")
    print(f"  Cost of sales:      {cost_to_string(summary.totals.total_cost_of_sales)}")
    return 0


def show_report_cmd(db: Database, week_id: str, as_json: bool) -> int:
    """Print the stored report of a finalized week."""
    summary = week_service.get_week_report(db, week_id)
    if summary is None:
        print(f"Week {week_id} has no report yet (not finalized)")
        return 1

    if as_json:
        print(json.dumps(summary.to_dict(), indent=2, sort_keys=True))
        return 0

    financials = week_service.get_week_financials(db, week_id)

    print(f"Week {week_id} - computed {summary.computed_at.isoformat()}")
    print(f"{'Ingredient':<30} {'Usage':>10} {'Unit cost':>10} {'Cost':>10} {'Share':>7}")
    print("-" * 71)
    for line in summary.breakdown:
        share = summary.ingredient_cost_share.get(line.ingredient_id, 0)
        print(
            f"{line.ingredient_id:<30} {_format_quantity(line.usage):>10} {line.unit_cost:>10} "
            f"{cost_to_string(line.cost_of_sales):>10} {share:>7}"
        )
    print("-" * 71)
    print(f"Total cost of sales: {cost_to_string(summary.totals.total_cost_of_sales)}")
    print(f"Gross sales:         {cost_to_string(financials['gross_sales'])}")
    print(f"Gross profit:        {cost_to_string(financials['gross_profit'])}")
    print(f"Gross margin:        {financials['gross_margin']}%")
    print(f"Food cost:           {financials['food_cost_percentage']}%")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="costbook",
        description="Weekly cost-of-sales ledger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  costbook init-db
  costbook add-ingredient cheese "Shredded Cheese" --unit lb --units-per-case 10 --case-price 30
  costbook create-week 2024-W05 --seed-active
  costbook set-inventory 2024-W05 cheese --begin 10 --received 5 --end 3
  costbook set-sales 2024-W05 --mon 1000
  costbook finalize-week 2024-W05 --by manager
  costbook show-report 2024-W05 --json
""",
    )
    parser.add_argument(
        "--database",
        dest="database_path",
        help="SQLite database file (default: from COSTBOOK_DATABASE_PATH / COSTBOOK_ENV)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log service operations")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("init-db", help="Create the database and its tables")

    create_parser = subparsers.add_parser("create-week", help="Create a draft week")
    create_parser.add_argument("week_id", help="Period key, e.g. 2024-W05")
    create_parser.add_argument(
        "--seed-active",
        action="store_true",
        help="Seed a zero inventory entry for every active ingredient",
    )
    create_parser.add_argument(
        "-i",
        "--ingredient",
        dest="ingredient_ids",
        action="append",
        default=[],
        help="Seed a zero inventory entry for this ingredient (repeatable)",
    )
    create_parser.add_argument("--by", dest="created_by", help="Who is creating the week")

    ingredient_parser = subparsers.add_parser(
        "add-ingredient", help="Add an ingredient with its case pricing"
    )
    ingredient_parser.add_argument("ingredient_id", help="Ingredient id, e.g. cheese")
    ingredient_parser.add_argument("name", help="Display name")
    ingredient_parser.add_argument(
        "--unit", dest="inventory_unit", required=True, help="Inventory unit (lb, each, ...)"
    )
    ingredient_parser.add_argument(
        "--units-per-case", required=True, help="Inventory units in one case"
    )
    ingredient_parser.add_argument("--case-price", required=True, help="Price of one case")
    ingredient_parser.add_argument("--category", help="food, paper or other (default: food)")

    inventory_parser = subparsers.add_parser(
        "set-inventory", help="Record inventory counts for one ingredient"
    )
    inventory_parser.add_argument("week_id", help="Draft week to update")
    inventory_parser.add_argument("ingredient_id", help="Ingredient counted")
    for field in INVENTORY_FIELDS:
        inventory_parser.add_argument(f"--{field}", help=f"{field.capitalize()} count")

    sales_parser = subparsers.add_parser("set-sales", help="Record daily sales for a week")
    sales_parser.add_argument("week_id", help="Draft week to update")
    for day in SALES_DAYS:
        sales_parser.add_argument(f"--{day}", help=f"Gross sales for {day}")

    finalize_parser = subparsers.add_parser("finalize-week", help="Finalize a draft week")
    finalize_parser.add_argument("week_id", help="Week to finalize")
    finalize_parser.add_argument("--by", dest="finalized_by", help="Who is finalizing the week")

    report_parser = subparsers.add_parser("show-report", help="Show a finalized week's report")
    report_parser.add_argument("week_id", help="Week to show")
    report_parser.add_argument("--json", dest="as_json", action="store_true", help="Print raw JSON")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    _configure_logging(args.verbose)

    if args.database_path:
        config = Config(get_config().environment, database_path=Path(args.database_path))
    else:
        config = get_config()

    db = initialize_app_database(config)
    try:
        if args.command == "init-db":
            return init_db_cmd(db)
        elif args.command == "create-week":
            return create_week_cmd(
                db, args.week_id, args.seed_active, args.ingredient_ids, args.created_by
            )
        elif args.command == "add-ingredient":
            return add_ingredient_cmd(
                db,
                args.ingredient_id,
                args.name,
                args.inventory_unit,
                args.units_per_case,
                args.case_price,
                args.category,
            )
        elif args.command == "set-inventory":
            counts = {field: getattr(args, field) for field in INVENTORY_FIELDS}
            return set_inventory_cmd(db, args.week_id, args.ingredient_id, counts)
        elif args.command == "set-sales":
            amounts = {day: getattr(args, day) for day in SALES_DAYS}
            return set_sales_cmd(db, args.week_id, amounts)
        elif args.command == "finalize-week":
            return finalize_week_cmd(db, args.week_id, args.finalized_by)
        elif args.command == "show-report":
            return show_report_cmd(db, args.week_id, args.as_json)
        else:
            print(f"Unknown command: {args.command}")
            return 1
    except ServiceError as e:
        print(f"ERROR: {e}")
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
