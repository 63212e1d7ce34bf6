"""Shared fixtures: stores, a pinned clock, and a ready-to-use planner."""

from datetime import date, datetime
from pathlib import Path

import pytest
import pytest_asyncio

from paycadence.config import PaycadenceConfig
from paycadence.dates import fixed_clock
from paycadence.planner import Planner
from paycadence.stores.base import BaseExpenseStore
from paycadence.stores.memory import InMemoryStore
from paycadence.stores.sql import SQLStore

TODAY = date(2025, 1, 10)
NOW = datetime(2025, 1, 10, 9, 30)


def fixed_now() -> datetime:
    return NOW


@pytest.fixture
def memory_store() -> InMemoryStore:
    return InMemoryStore(now=fixed_now)


@pytest.fixture
def sql_store(tmp_path: Path) -> SQLStore:
    return SQLStore(url=f"sqlite:///{tmp_path / 'paycadence.db'}", now=fixed_now)


@pytest_asyncio.fixture(params=["memory", "sql"])
async def store(request: pytest.FixtureRequest, tmp_path: Path) -> BaseExpenseStore:
    """Every backend, seeded with the default categories."""
    if request.param == "memory":
        backend: BaseExpenseStore = InMemoryStore(now=fixed_now)
    else:
        backend = SQLStore(url=f"sqlite:///{tmp_path / 'store.db'}", now=fixed_now)
    await backend.initialize_default_categories()
    yield backend
    await backend.close()


@pytest_asyncio.fixture
async def seeded_memory_store() -> InMemoryStore:
    backend = InMemoryStore(now=fixed_now)
    await backend.initialize_default_categories()
    return backend


@pytest_asyncio.fixture
async def planner(seeded_memory_store: InMemoryStore) -> Planner:
    """A planner over an in-memory store with today pinned to 2025-01-10."""
    instance = Planner(config=PaycadenceConfig(), store=seeded_memory_store, clock=fixed_clock(TODAY))
    await instance.initialize()
    return instance
