"""Pytest configuration for SQLAlchemy Paranoid."""

from datetime import datetime

import pytest
from sqlalchemy import create_engine, event

import paranoid.column


def pytest_configure(config):
    """Configure pytest with custom settings."""
    config.addinivalue_line("markers", "cascade: mark test as a cascade test")


@pytest.fixture
def sqlite_engine():
    """In-memory SQLite engine with working SAVEPOINT support."""
    engine = create_engine("sqlite:///:memory:")

    # pysqlite emits its own BEGIN lazily, which breaks SAVEPOINT;
    # take over transaction control as the SQLAlchemy docs recommend.
    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    yield engine

    engine.dispose()


@pytest.fixture
def frozen_clock(monkeypatch):
    """Make every time-marker deletion happen at one fixed instant."""
    moment = datetime(2024, 3, 1, 9, 30, 0)
    monkeypatch.setattr(paranoid.column, "utcnow", lambda: moment)
    return moment
