"""
Unit tests for DatabaseContext, run against an SQLite-backed connection.
"""

import sqlite3
from datetime import datetime

import pytest

from framepipe.components import FrameListReader, SetField
from framepipe.components.base import FrameWriter
from framepipe.context.database_context import LAST_RUN_SYM, RUN_COUNT_SYM, DatabaseContext
from framepipe.core.exceptions import ConfigError, JobError
from framepipe.core.models import RunStatus
from framepipe.engine.pipeline import TransformEngine


def persisted(path, job_name, key):
    with sqlite3.connect(path) as conn:
        return conn.execute(
            "SELECT attribute_value, value_type FROM fp_context WHERE job_name = ? AND attribute_key = ?",
            (job_name, key),
        ).fetchall()


class CollectingWriter(FrameWriter):
    def __init__(self):
        super().__init__()
        self.frames = []

    def write(self, frame, context):
        self.frames.append(frame.to_dict())


class TestDatabaseContext:
    """Tests for persisted symbols"""

    def test_previous_run_values_loaded_on_open(self, connection_factory):
        first = DatabaseContext("nightly-import", connection_factory())
        first.open()
        first.set_symbol("lastRun", "2024-01-01")
        first.close()

        second = DatabaseContext("nightly-import", connection_factory())
        second.open()
        assert second.symbols["lastRun"] == "2024-01-01"
        second.close()

    def test_persisted_value_visible_to_first_frame(self, connection_factory):
        first = DatabaseContext("nightly-import", connection_factory())
        first.open()
        first.set_symbol("lastRun", "2024-01-01")
        first.close()

        writer = CollectingWriter()
        engine = TransformEngine(context=DatabaseContext("nightly-import", connection_factory()))
        engine.set_reader(FrameListReader([{"id": 1}]))
        engine.add_transformer(SetField({"field": "since", "value": "[#$lastRun#]"}))
        engine.add_writer(writer)

        result = engine.run()

        assert result.status is RunStatus.COMPLETED
        assert writer.frames == [{"id": 1, "since": "2024-01-01"}]

    def test_run_count_and_last_run(self, connection_factory):
        first = DatabaseContext("job", connection_factory())
        first.open()
        first.mark_started()
        assert first.symbols[RUN_COUNT_SYM] == 1
        assert LAST_RUN_SYM not in first.symbols
        first.close()

        second = DatabaseContext("job", connection_factory())
        second.open()
        assert second.symbols[RUN_COUNT_SYM] == 2
        assert second.symbols[LAST_RUN_SYM] == first.started_at
        second.close()

    def test_value_types_restored(self, connection_factory):
        stamp = datetime(2024, 3, 1, 12, 30, 15)
        first = DatabaseContext("job", connection_factory())
        first.open()
        first.set_symbol("count", 42)
        first.set_symbol("big", 2**40)
        first.set_symbol("ratio", 2.5)
        first.set_symbol("enabled", True)
        first.set_symbol("when", stamp)
        first.set_symbol("label", "it's")
        first.close()

        second = DatabaseContext("job", connection_factory())
        second.open()
        assert second.symbols["count"] == 42
        assert second.symbols["big"] == 2**40
        assert second.symbols["ratio"] == 2.5
        assert second.symbols["enabled"] is True
        assert second.symbols["when"] == stamp
        assert second.symbols["label"] == "it's"
        second.close()

    def test_close_updates_existing_rows(self, connection_factory, sqlite_path):
        for value in ("a", "b", "c"):
            ctx = DatabaseContext("job", connection_factory())
            ctx.open()
            ctx.set_symbol("key", value)
            ctx.close()

        assert persisted(sqlite_path, "job", "key") == [("c", 3)]

    def test_job_names_are_isolated(self, connection_factory):
        ctx = DatabaseContext("one", connection_factory())
        ctx.open()
        ctx.set_symbol("key", "one's")
        ctx.close()

        other = DatabaseContext("two", connection_factory())
        other.open()
        assert "key" not in other.symbols
        assert other.symbols[RUN_COUNT_SYM] == 1
        other.close()

    def test_reset_overrides_persisted_values(self, connection_factory):
        ctx = DatabaseContext("job", connection_factory())
        ctx.open()
        ctx.set_symbol("batch", 5)
        ctx.close()

        reset = DatabaseContext("job", connection_factory(), reset={"batch": 0})
        reset.open()
        assert reset.symbols["batch"] == 0
        reset.close()

    def test_transient_and_non_scalar_symbols_not_persisted(self, connection_factory, sqlite_path):
        ctx = DatabaseContext("job", connection_factory())
        ctx.open()
        ctx.set_symbol("items", [1, 2])
        ctx.close()

        assert persisted(sqlite_path, "job", "items") == []
        assert persisted(sqlite_path, "job", "job_name") == []
        assert persisted(sqlite_path, "job", "work_dir") == []

    def test_table_created_once(self, connection_factory):
        first_conn = connection_factory()
        first = DatabaseContext("job", first_conn)
        first.open()
        first.close()

        second_conn = connection_factory()
        second = DatabaseContext("job", second_conn)
        second.open()
        second.close()

        assert any(s.startswith("CREATE TABLE fp_context") for s in first_conn.statements)
        assert any(s.startswith("CREATE INDEX") for s in first_conn.statements)
        assert not any(s.startswith("CREATE") for s in second_conn.statements)

    def test_open_is_idempotent(self, sqlite_connection):
        ctx = DatabaseContext("job", sqlite_connection)
        ctx.open()
        ctx.open()
        assert sqlite_connection.open_calls == 1
        assert ctx.symbols[RUN_COUNT_SYM] == 1
        ctx.close()
        ctx.close()
        assert sqlite_connection.close_calls == 1

    def test_connection_released_when_persist_fails(self, sqlite_connection):
        ctx = DatabaseContext("job", sqlite_connection)
        ctx.open()

        def broken(statement, params=None):
            raise sqlite3.OperationalError("disk I/O error")

        sqlite_connection.execute = broken
        with pytest.raises(sqlite3.OperationalError):
            ctx.close()
        assert sqlite_connection.close_calls == 1
        assert not ctx.is_open

    def test_connection_released_when_open_fails(self, sqlite_connection):
        def broken(statement, params=None):
            raise sqlite3.OperationalError("permission denied")

        sqlite_connection.query = broken
        ctx = DatabaseContext("job", sqlite_connection)
        with pytest.raises(sqlite3.OperationalError):
            ctx.open()
        assert sqlite_connection.close_calls == sqlite_connection.open_calls == 1
        assert not ctx.is_open

    def test_engine_open_failure_releases_connection(self, sqlite_connection):
        def broken(statement, params=None):
            raise sqlite3.OperationalError("permission denied")

        sqlite_connection.query = broken
        engine = TransformEngine(context=DatabaseContext("job", sqlite_connection))
        engine.set_reader(FrameListReader([{"id": 1}]))

        with pytest.raises(JobError, match="permission denied"):
            engine.run()
        assert sqlite_connection.close_calls == sqlite_connection.open_calls

    def test_unknown_product_rejected(self, sqlite_connection):
        with pytest.raises(ConfigError, match="DB2"):
            DatabaseContext("job", sqlite_connection, product="DB2")

    def test_invalid_table_name_rejected(self, sqlite_connection):
        with pytest.raises(ConfigError, match="Invalid SQL identifier"):
            DatabaseContext("job", sqlite_connection, table="fp; DROP TABLE x")


class TestConcurrentRuns:
    """
    Two runs of the same job are not isolated: each loads its own
    snapshot, and the run that closes last determines the stored value.
    """

    def test_last_close_wins(self, connection_factory):
        first = DatabaseContext("shared", connection_factory())
        second = DatabaseContext("shared", connection_factory())
        first.open()
        second.open()

        first.set_symbol("key", "from-first")
        second.set_symbol("key", "from-second")

        first.close()
        second.close()

        reader = DatabaseContext("shared", connection_factory())
        reader.open()
        assert reader.symbols["key"] == "from-second"
        reader.close()

    def test_last_close_wins_in_reverse_order(self, connection_factory):
        first = DatabaseContext("shared", connection_factory())
        second = DatabaseContext("shared", connection_factory())
        first.open()
        second.open()

        first.set_symbol("key", "from-first")
        second.set_symbol("key", "from-second")

        second.close()
        first.close()

        reader = DatabaseContext("shared", connection_factory())
        reader.open()
        assert reader.symbols["key"] == "from-first"
        reader.close()
