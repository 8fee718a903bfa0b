"""
Pytest configuration and fixtures for framepipe tests

This module provides shared fixtures for unit and integration tests.
"""
import sqlite3
from pathlib import Path
from typing import Any, Generator

import pytest

from framepipe.context.listener import ContextListener
from framepipe.context.transform_context import TransformContext
from framepipe.db.dialect import SQLITE


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )


# =======================
# CONTEXT FIXTURES
# =======================

class RecordingListener(ContextListener):
    """Listener remembering every event it receives, in order."""

    def __init__(self):
        self.events: list[tuple[str, Any]] = []

    def on_start(self, context):
        self.events.append(("start", context.name))

    def on_end(self, context):
        self.events.append(("end", context.name))

    def on_read(self, txn):
        self.events.append(("read", txn.row))

    def on_filtered(self, txn, source):
        self.events.append(("filtered", txn.row))

    def on_validation_failed(self, context, source, message):
        self.events.append(("validation_failed", message))

    def on_write(self, txn, source):
        self.events.append(("write", txn.row))

    def on_error(self, context, source, message):
        self.events.append(("error", message))

    def named(self, event: str) -> list[Any]:
        return [payload for name, payload in self.events if name == event]


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def context(tmp_path) -> TransformContext:
    """In-memory context working in a temporary directory"""
    return TransformContext("test-job", job_dir=tmp_path, work_dir=tmp_path)


# =======================
# DATABASE FIXTURES
# =======================

class SQLiteConnection:
    """
    Relational connection backed by an SQLite file

    Several instances pointing at the same file see each other's
    committed writes, like separate sessions on one database.
    """

    product = SQLITE

    def __init__(self, path: Path):
        self.path = path
        self.statements: list[str] = []
        self.open_calls = 0
        self.close_calls = 0
        self._conn: sqlite3.Connection | None = None

    def open(self) -> None:
        self.open_calls += 1
        self._conn = sqlite3.connect(self.path)
        self._conn.row_factory = sqlite3.Row

    def close(self) -> None:
        self.close_calls += 1
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def execute(self, sql: str, params: tuple | None = None) -> int:
        self.statements.append(sql)
        cursor = self._conn.execute(sql, params or ())
        self._conn.commit()
        return cursor.rowcount

    def query(self, sql: str, params: tuple | None = None) -> list[dict[str, Any]]:
        self.statements.append(sql)
        return [dict(row) for row in self._conn.execute(sql, params or ()).fetchall()]


@pytest.fixture
def sqlite_path(tmp_path) -> Path:
    return tmp_path / "context.db"


@pytest.fixture
def sqlite_connection(sqlite_path) -> SQLiteConnection:
    return SQLiteConnection(sqlite_path)


@pytest.fixture
def connection_factory(sqlite_path):
    """Build further connections to the same SQLite database"""
    return lambda: SQLiteConnection(sqlite_path)


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[Any, None, None]:
    """
    Start PostgreSQL container for integration tests

    Skips when Docker is not available.

    Yields:
        PostgresContainer instance
    """
    from testcontainers.postgres import PostgresContainer

    container = PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_framepipe",
        password="test_password",
        dbname="test_framepipe",
    )
    try:
        container.start()
    except Exception as e:
        pytest.skip(f"Docker is not available: {e}")

    try:
        yield container
    finally:
        container.stop()
