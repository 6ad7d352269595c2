"""Pytest configuration and fixtures for Costbook tests."""

from decimal import Decimal

import pytest

from costbook.services import ingredient_service
from costbook.services.database import Database
from costbook.utils.config import Config


@pytest.fixture(scope="function")
def test_config(tmp_path):
    """Development config pointing at a per-test database file."""
    return Config("development", database_path=tmp_path / "costbook.db")


@pytest.fixture(scope="function")
def db(test_config):
    """Provide a clean in-memory database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database (one shared connection)
    2. Creates all tables
    3. Provides the Database handle to the test
    4. Disposes the engine after the test completes
    """
    database = Database("sqlite:///:memory:", config=test_config, backoff_seconds=0)
    database.init_database()
    yield database
    database.close()


@pytest.fixture(scope="function")
def file_db(test_config):
    """File-backed database for tests that need independent connections.

    Concurrency tests run a competing transaction on a second connection
    while the first one is mid-flight, which an in-memory StaticPool
    database cannot model.
    """
    database = Database(config=test_config, backoff_seconds=0)
    database.init_database()
    yield database
    database.close()


def _cheese_data(**overrides):
    data = {
        "id": "cheese",
        "name": "Shredded Cheese",
        "inventory_unit": "lb",
        "units_per_case": 10,
        "case_price": 30,
        "category": "food",
    }
    data.update(overrides)
    return data


@pytest.fixture(scope="function")
def make_ingredient():
    """Factory creating a regular ingredient in the given database."""

    def _make(database, ingredient_id, case_price, units_per_case, inventory_unit="lb", **extra):
        data = {
            "id": ingredient_id,
            "name": extra.pop("name", ingredient_id.replace("-", " ").title()),
            "inventory_unit": inventory_unit,
            "units_per_case": units_per_case,
            "case_price": case_price,
        }
        data.update(extra)
        return ingredient_service.create_ingredient(database, data)

    return _make


@pytest.fixture(scope="function")
def cheese(db):
    """Cheese at $30 per case of 10 lb (unit cost 3.0000)."""
    return ingredient_service.create_ingredient(db, _cheese_data())


@pytest.fixture(scope="function")
def file_cheese(file_db):
    """Same cheese, in the file-backed database."""
    return ingredient_service.create_ingredient(file_db, _cheese_data())


@pytest.fixture(scope="function")
def salsa_ingredients(db, make_ingredient):
    """Tomato and onion plus a salsa batch yielding 4 cups.

    Tomato: $15 / 10 lb = 1.5000 per lb
    Onion:  $25 / 50 each = 0.5000 each
    Salsa:  2 lb tomato + 1 onion = 3.5000 per batch -> 0.8750 per cup
    """
    tomato = make_ingredient(db, "tomato", 15, 10, "lb")
    onion = make_ingredient(db, "onion", 25, 50, "each")
    salsa = ingredient_service.create_ingredient(
        db,
        {
            "id": "salsa",
            "name": "House Salsa",
            "inventory_unit": "cup",
            "units_per_case": 1,
            "case_price": 0,
            "is_batch": True,
            "yield_quantity": 4,
            "yield_unit": "cup",
            "recipe_lines": [
                {"ingredient_id": "tomato", "quantity": 2, "unit": "lb"},
                {"ingredient_id": "onion", "quantity": 1, "unit": "each"},
            ],
        },
    )
    return {"tomato": tomato, "onion": onion, "salsa": salsa, "expected_cost": Decimal("0.8750")}
