"""Schema migrations for the simple-memory SQLite database.

The schema is versioned through a schema_version table and evolved by an
ordered list of additive steps. Each step is idempotent: it inspects the
live schema and only creates what is missing, so it is safe on fresh
databases, on databases written by older releases (which predate the
schema_version table), and on re-runs. Steps never drop or rename data.

Versions:
    1. memories + embeddings tables and their indexes
    2. updated_at / updated_iso columns on memories
    3. tags table (memory_id, tag) and its index

Example:
    >>> conn = sqlite3.connect(":memory:")
    >>> migrate(conn)
    [1, 2, 3]
    >>> migrate(conn)
    []
"""

import logging
import sqlite3
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from simple_memory.errors import StorageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    """One additive schema step.

    Attributes:
        version: Monotonic version number recorded once applied
        description: Human-readable summary for logs
        apply: Idempotent function performing the change
    """

    version: int
    description: str
    apply: Callable[[sqlite3.Connection], None]


def table_exists(conn: sqlite3.Connection, table: str) -> bool:
    """Check whether a table exists."""
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (table,)
    ).fetchone()
    return row is not None


def column_exists(conn: sqlite3.Connection, table: str, column: str) -> bool:
    """Check whether a column exists on a table."""
    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return any(row[1] == column for row in rows)


def _create_core_tables(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS memories (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT,
            content TEXT NOT NULL,
            type TEXT DEFAULT 'memory',
            project TEXT DEFAULT 'default',
            created_at INTEGER NOT NULL,
            created_iso TEXT NOT NULL
        )
    """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS embeddings (
            memory_id INTEGER PRIMARY KEY,
            vector BLOB NOT NULL
        )
    """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_mem_project ON memories(project)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_mem_created ON memories(created_at)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_mem_type ON memories(type)")


def _add_updated_columns(conn: sqlite3.Connection) -> None:
    for column, declaration in (("updated_at", "INTEGER"), ("updated_iso", "TEXT")):
        if not column_exists(conn, "memories", column):
            conn.execute(f"ALTER TABLE memories ADD COLUMN {column} {declaration}")
            logger.info(f"Added column memories.{column}")


def _create_tags_table(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS tags (
            memory_id INTEGER NOT NULL,
            tag TEXT NOT NULL,
            PRIMARY KEY (memory_id, tag)
        )
    """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_tags_tag ON tags(tag)")


MIGRATIONS: tuple[Migration, ...] = (
    Migration(1, "memories and embeddings tables", _create_core_tables),
    Migration(2, "updated_at/updated_iso columns", _add_updated_columns),
    Migration(3, "tags table", _create_tags_table),
)

LATEST_VERSION = MIGRATIONS[-1].version


def ensure_version_table(conn: sqlite3.Connection) -> None:
    """Create the schema_version table if missing."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_version (
            version INTEGER PRIMARY KEY,
            applied_at REAL NOT NULL
        )
    """
    )
    conn.commit()


def applied_versions(conn: sqlite3.Connection) -> set[int]:
    """Return the set of recorded schema versions."""
    if not table_exists(conn, "schema_version"):
        return set()
    return {row[0] for row in conn.execute("SELECT version FROM schema_version")}


def current_version(conn: sqlite3.Connection) -> int:
    """Highest recorded schema version, 0 for an unversioned database."""
    versions = applied_versions(conn)
    return max(versions) if versions else 0


def migrate(
    conn: sqlite3.Connection,
    migrations: Sequence[Migration] = MIGRATIONS,
) -> list[int]:
    """Apply pending migrations in version order.

    Each step runs in its own transaction together with its schema_version
    row, so a failure leaves earlier steps applied and the failed one absent.

    Args:
        conn: Open SQLite connection
        migrations: Steps to consider (default: MIGRATIONS)

    Returns:
        Versions applied by this call, in order

    Raises:
        StorageError: If a step fails
    """
    if conn.in_transaction:
        conn.commit()
    ensure_version_table(conn)
    done = applied_versions(conn)
    applied: list[int] = []

    for migration in sorted(migrations, key=lambda m: m.version):
        if migration.version in done:
            continue
        try:
            conn.execute("BEGIN")
            migration.apply(conn)
            conn.execute(
                "INSERT OR IGNORE INTO schema_version (version, applied_at) VALUES (?, ?)",
                (migration.version, time.time()),
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(
                f"Migration {migration.version} ({migration.description}) failed: {e}"
            ) from e

        logger.info(f"Applied schema migration {migration.version}: {migration.description}")
        applied.append(migration.version)

    return applied
