import os
import sys
from datetime import datetime, timedelta

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from app import create_app
from database import SqliteBackend, init_db
from store import InventoryStore


class FixedClock:
    def __init__(self, moment):
        self.moment = moment

    def __call__(self):
        return self.moment

    def advance(self, **kwargs):
        self.moment += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 3, 15, 9, 30))


@pytest.fixture
def backend(tmp_path):
    backend = SqliteBackend(tmp_path / "stock.db")
    init_db(backend, seed=False)
    yield backend
    backend.close()


@pytest.fixture
def store(backend, clock):
    return InventoryStore(backend, clock=clock)


@pytest.fixture
def milk(store):
    return store.create_item("Milk", "Coffee", unit="cartons", is_core=True)


@pytest.fixture
def app(tmp_path, clock):
    app = create_app(
        {
            "TESTING": True,
            "DATABASE_URL": None,
            "SQLITE_PATH": str(tmp_path / "app.db"),
            "SEED_CATALOG": False,
            "LOG_DIR": None,
        },
        clock=clock,
    )
    yield app
    app.extensions["inventory_store"].close()


@pytest.fixture
def client(app):
    return app.test_client()
