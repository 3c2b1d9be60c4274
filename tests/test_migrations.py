"""Tests for schema migrations: fresh databases, legacy upgrades, idempotency."""

import sqlite3

import pytest

from simple_memory.errors import StorageError
from simple_memory.storage.migrations import (
    LATEST_VERSION,
    MIGRATIONS,
    Migration,
    column_exists,
    current_version,
    migrate,
    table_exists,
)
from simple_memory.storage.sqlite_store import SQLiteStore


@pytest.fixture
def conn():
    c = sqlite3.connect(":memory:")
    yield c
    c.close()


def _create_legacy_schema(conn: sqlite3.Connection) -> None:
    """Schema written by the first release: no updated_* columns, no tags, no versions."""
    conn.executescript(
        """
        CREATE TABLE memories (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT,
            content TEXT NOT NULL,
            type TEXT DEFAULT 'memory',
            project TEXT DEFAULT 'default',
            created_at INTEGER NOT NULL,
            created_iso TEXT NOT NULL
        );
        CREATE TABLE embeddings (memory_id INTEGER PRIMARY KEY, vector BLOB NOT NULL);
        INSERT INTO memories (title, content, type, project, created_at, created_iso)
        VALUES ('old', 'legacy content', 'memory', 'default', 1000, '1970-01-01T00:00:01.000Z');
        """
    )
    conn.commit()


class TestFreshDatabase:
    def test_applies_all_steps_in_order(self, conn):
        assert migrate(conn) == [m.version for m in MIGRATIONS]
        assert current_version(conn) == LATEST_VERSION

    def test_creates_tables_and_columns(self, conn):
        migrate(conn)
        for table in ("memories", "embeddings", "tags", "schema_version"):
            assert table_exists(conn, table)
        assert column_exists(conn, "memories", "updated_at")
        assert column_exists(conn, "memories", "updated_iso")

    def test_rerun_is_noop(self, conn):
        migrate(conn)
        assert migrate(conn) == []
        assert current_version(conn) == LATEST_VERSION


class TestLegacyUpgrade:
    def test_unversioned_database_upgrades_in_place(self, conn):
        _create_legacy_schema(conn)
        assert current_version(conn) == 0

        applied = migrate(conn)

        assert applied == [1, 2, 3]
        assert column_exists(conn, "memories", "updated_at")
        assert table_exists(conn, "tags")
        row = conn.execute("SELECT content, updated_at FROM memories").fetchone()
        assert row == ("legacy content", None)

    def test_partially_upgraded_database(self, conn):
        _create_legacy_schema(conn)
        conn.execute("ALTER TABLE memories ADD COLUMN updated_at INTEGER")
        conn.commit()

        migrate(conn)

        assert column_exists(conn, "memories", "updated_iso")
        assert conn.execute("SELECT COUNT(*) FROM memories").fetchone()[0] == 1

    def test_store_opens_legacy_file(self, temp_dir):
        db_path = temp_dir / "memory.db"
        legacy = sqlite3.connect(db_path)
        _create_legacy_schema(legacy)
        legacy.close()

        store = SQLiteStore(db_path)
        try:
            [record] = store.list_memories()
            assert record.content == "legacy content"
            assert record.tags == []
            store.set_tags(record.id, ["Legacy"])
            assert store.get_tags(record.id) == {"legacy"}
        finally:
            store.close()


class TestFailures:
    def test_failed_step_raises_and_is_not_recorded(self, conn):
        def broken(c: sqlite3.Connection) -> None:
            c.execute("CREATE TABLE half_done (x INTEGER)")
            c.execute("SELECT * FROM no_such_table")

        steps = (*MIGRATIONS, Migration(99, "broken step", broken))

        with pytest.raises(StorageError, match="Migration 99"):
            migrate(conn, steps)

        assert current_version(conn) == LATEST_VERSION
        assert not table_exists(conn, "half_done")

    def test_custom_step_applies_once(self, conn):
        calls = []

        def step(c: sqlite3.Connection) -> None:
            calls.append(1)
            c.execute("CREATE TABLE IF NOT EXISTS extra (x INTEGER)")

        steps = (*MIGRATIONS, Migration(4, "extra table", step))
        assert migrate(conn, steps)[-1] == 4
        assert migrate(conn, steps) == []
        assert calls == [1]
