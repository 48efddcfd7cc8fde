"""Shared test fixtures."""

import pytest

from fxsync import create_service
from fxsync.rates.store import RateStore


@pytest.fixture
def db_service(tmp_path):
    """Provide a fresh SQLite DatabaseService for each test."""
    db_path = tmp_path / "test.db"
    service = create_service(f"sqlite:///{db_path}")
    service.connect()
    yield service
    service.close()


@pytest.fixture
def store(db_service):
    """A RateStore with both tables created and no data."""
    rate_store = RateStore(db_service)
    rate_store.ensure_schema()
    return rate_store
