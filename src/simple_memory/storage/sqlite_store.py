"""SQLite storage layer for simple-memory.

This module provides persistent storage for:
- Memory records (title, content, type, project, timestamps)
- Tags, one row per (memory, normalized tag)
- Embedding vectors, one float32 BLOB per memory

Keyword matching is done in SQL through a deterministic ci_contains()
function registered on the connection (Python casefold, so it is
Unicode-aware and treats % and _ in user input literally). Vector ranking is
done by the caller over iter_embeddings(); there is no vector index.

Example:
    >>> store = SQLiteStore(Path("~/.mcp-simple-memory/memory.db").expanduser())
    >>> mem_id = store.create("Auth tokens expire after 1h", tags=["auth"])
    >>> store.search_keyword(MemoryFilter(terms=("auth",)))
"""

import logging
import sqlite3
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Optional, Union

import numpy as np
import sqlite_vec

from simple_memory.constants import (
    BUSY_TIMEOUT_MS,
    DB_FILENAME,
    DEFAULT_DATA_DIR,
    DEFAULT_LIMIT,
    DEFAULT_PROJECT,
    DEFAULT_TYPE,
)
from simple_memory.errors import NoOpError, NotFoundError, StorageError, ValidationError
from simple_memory.storage.migrations import current_version, migrate
from simple_memory.storage.types import MemoryFilter, StoreStats, TagCount
from simple_memory.types.memory import (
    MemoryRecord,
    derive_title,
    iso_from_ms,
    normalize_tags,
    now_ms,
)

# MCP servers must never write to stdout (corrupts JSON-RPC)
logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"

_MEMORY_COLUMNS = """
    m.id, m.title, m.content, m.type, m.project,
    m.created_at, m.created_iso, m.updated_at, m.updated_iso
"""


def _ci_contains(haystack: Optional[str], needle: Optional[str]) -> int:
    """SQL function: 1 if needle is a case-insensitive substring of haystack."""
    if haystack is None or needle is None:
        return 0
    return int(needle.casefold() in haystack.casefold())


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def _unique_ids(ids: Iterable[int]) -> list[int]:
    seen: dict[int, None] = {}
    for memory_id in ids:
        seen.setdefault(int(memory_id), None)
    return list(seen)


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


class SQLiteStore:
    """SQLite storage for memory records, tags and embedding vectors.

    One connection is shared by the tool handlers and the embedding worker
    thread; a re-entrant lock serializes access to it. Every mutating method
    commits before returning.

    Args:
        db_path: Path to database file, or ":memory:".
                 Defaults to ~/.mcp-simple-memory/memory.db

    Attributes:
        db_path: Path to database file (":memory:" for in-memory stores)
        _conn: SQLite connection
    """

    def __init__(self, db_path: Optional[Union[Path, str]] = None):
        """Open the database and bring its schema up to date.

        Args:
            db_path: Path to database file. Defaults to ~/.mcp-simple-memory/memory.db

        Raises:
            StorageError: If database initialization or migration fails
        """
        if db_path is None:
            db_path = DEFAULT_DATA_DIR / DB_FILENAME
        self.db_path: Union[Path, str] = (
            IN_MEMORY if str(db_path) == IN_MEMORY else Path(db_path)
        )
        self._lock = threading.RLock()

        try:
            if isinstance(self.db_path, Path):
                self.db_path.parent.mkdir(parents=True, exist_ok=True)

            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            # WAL mode for better concurrent read performance
            self._conn.execute("PRAGMA journal_mode = WAL")
            self._conn.execute(f"PRAGMA busy_timeout = {BUSY_TIMEOUT_MS}")
            self._conn.row_factory = sqlite3.Row
            self._conn.create_function("ci_contains", 2, _ci_contains, deterministic=True)
        except (OSError, sqlite3.Error) as e:
            raise StorageError(f"Failed to initialize SQLite storage: {e}") from e

        applied = migrate(self._conn)
        if applied:
            logger.info(f"Schema migrated to version {applied[-1]} at {self.db_path}")

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()

    # =========================================================================
    # Records
    # =========================================================================

    def create(
        self,
        content: str,
        title: Optional[str] = None,
        project: Optional[str] = None,
        type: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> int:
        """Insert a memory record (and its tags) in one transaction.

        Args:
            content: Memory text, must not be empty
            title: Optional title; derived from content when omitted
            project: Namespace (default: 'default')
            type: Category (default: 'memory')
            tags: Optional tags, normalized before storage

        Returns:
            New memory id

        Raises:
            ValidationError: If content is empty
            StorageError: If the insert fails
        """
        if not isinstance(content, str) or _blank(content):
            raise ValidationError("content is required")

        now = now_ms()
        resolved_title = title if not _blank(title) else derive_title(content)

        with self._lock:
            try:
                cursor = self._conn.execute(
                    """
                    INSERT INTO memories (title, content, type, project, created_at, created_iso)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        resolved_title,
                        content,
                        type if not _blank(type) else DEFAULT_TYPE,
                        project if not _blank(project) else DEFAULT_PROJECT,
                        now,
                        iso_from_ms(now),
                    ),
                )
                memory_id = int(cursor.lastrowid)
                self._write_tags(memory_id, normalize_tags(tags))
                self._conn.commit()
                return memory_id
            except sqlite3.Error as e:
                self._conn.rollback()
                raise StorageError(f"Failed to create memory: {e}") from e

    def update(
        self,
        memory_id: int,
        *,
        content: Optional[str] = None,
        title: Optional[str] = None,
        type: Optional[str] = None,
        project: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> bool:
        """Update fields of an existing memory.

        Only fields whose value differs from the stored one are written, and
        updated_at is set only when at least one of them did. A tags-only
        update replaces the tag set and leaves updated_at untouched.

        Args:
            memory_id: Memory id
            content: New content (must not be blank when given)
            title: New title
            type: New type
            project: New project
            tags: Replacement tag set ([] clears)

        Returns:
            True if content or title changed (the embedding needs refreshing)

        Raises:
            NoOpError: If no field was supplied
            ValidationError: If content is given but blank
            NotFoundError: If the memory does not exist
            StorageError: If the update fails
        """
        fields: dict[str, str] = {}
        if content is not None:
            if _blank(content):
                raise ValidationError("content must not be empty")
            fields["content"] = content
        for name, value in (("title", title), ("type", type), ("project", project)):
            if not _blank(value):
                fields[name] = value  # type: ignore[assignment]

        if not fields and tags is None:
            raise NoOpError("No fields to update")

        with self._lock:
            try:
                existing = self._conn.execute(
                    "SELECT title, content, type, project FROM memories WHERE id = ?",
                    (memory_id,),
                ).fetchone()
                if existing is None:
                    raise NotFoundError(f"Memory #{memory_id} not found")

                changed = {k: v for k, v in fields.items() if v != existing[k]}

                if changed:
                    now = now_ms()
                    fields_sql = dict(changed, updated_at=now, updated_iso=iso_from_ms(now))
                    set_clause = ", ".join(f"{k} = ?" for k in fields_sql)
                    self._conn.execute(
                        f"UPDATE memories SET {set_clause} WHERE id = ?",
                        [*fields_sql.values(), memory_id],
                    )

                if tags is not None:
                    self._conn.execute("DELETE FROM tags WHERE memory_id = ?", (memory_id,))
                    self._write_tags(memory_id, normalize_tags(tags))

                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                raise StorageError(f"Failed to update memory: {e}") from e

        return "content" in changed or "title" in changed

    def get_by_ids(self, ids: Iterable[int]) -> list[MemoryRecord]:
        """Fetch records with their tags, in first-requested order.

        Missing ids are skipped and duplicates collapsed.
        """
        wanted = _unique_ids(ids)
        if not wanted:
            return []

        with self._lock:
            try:
                rows = self._conn.execute(
                    f"SELECT {_MEMORY_COLUMNS} FROM memories m "
                    f"WHERE m.id IN ({_placeholders(len(wanted))})",
                    wanted,
                ).fetchall()
                records = self._with_tags(rows)
            except sqlite3.Error as e:
                raise StorageError(f"Failed to get memories: {e}") from e

        by_id = {record.id: record for record in records}
        return [by_id[memory_id] for memory_id in wanted if memory_id in by_id]

    def delete(self, ids: Iterable[int]) -> int:
        """Delete records with their tags and vectors in one transaction.

        Returns:
            Number of ids that referred to existing records
        """
        wanted = _unique_ids(ids)
        if not wanted:
            return 0

        marks = _placeholders(len(wanted))
        with self._lock:
            try:
                existing = [
                    row[0]
                    for row in self._conn.execute(
                        f"SELECT id FROM memories WHERE id IN ({marks})", wanted
                    )
                ]
                if existing:
                    marks = _placeholders(len(existing))
                    self._conn.execute(f"DELETE FROM tags WHERE memory_id IN ({marks})", existing)
                    self._conn.execute(
                        f"DELETE FROM embeddings WHERE memory_id IN ({marks})", existing
                    )
                    self._conn.execute(f"DELETE FROM memories WHERE id IN ({marks})", existing)
                    self._conn.commit()
                return len(existing)
            except sqlite3.Error as e:
                self._conn.rollback()
                raise StorageError(f"Failed to delete memories: {e}") from e

    def list_memories(
        self, filter: Optional[MemoryFilter] = None, limit: int = DEFAULT_LIMIT
    ) -> list[MemoryRecord]:
        """List records matching a filter, newest first.

        Args:
            filter: Conjunctive filter (project, type, tag, terms)
            limit: Maximum number of results

        Returns:
            Records ordered by created_at DESC, then id DESC
        """
        where, params = self._where(filter or MemoryFilter())
        with self._lock:
            try:
                rows = self._conn.execute(
                    f"""
                    SELECT {_MEMORY_COLUMNS}
                    FROM memories m
                    {where}
                    ORDER BY m.created_at DESC, m.id DESC
                    LIMIT ?
                    """,
                    [*params, limit],
                ).fetchall()
                return self._with_tags(rows)
            except sqlite3.Error as e:
                raise StorageError(f"Failed to list memories: {e}") from e

    def search_keyword(
        self, filter: MemoryFilter, limit: int = DEFAULT_LIMIT
    ) -> list[MemoryRecord]:
        """Keyword search: every term must occur in title or content.

        Matching is a case-insensitive substring test; there is no ranking
        beyond recency.
        """
        if not filter.terms:
            return []
        return self.list_memories(filter, limit)

    def count(self, filter: Optional[MemoryFilter] = None) -> int:
        """Count records matching a filter."""
        where, params = self._where(filter or MemoryFilter())
        with self._lock:
            try:
                row = self._conn.execute(
                    f"SELECT COUNT(*) FROM memories m {where}", params
                ).fetchone()
                return row[0] if row else 0
            except sqlite3.Error as e:
                raise StorageError(f"Failed to count memories: {e}") from e

    def all_records(self) -> list[MemoryRecord]:
        """All records, oldest first, without tags."""
        with self._lock:
            try:
                rows = self._conn.execute(
                    f"SELECT {_MEMORY_COLUMNS} FROM memories m ORDER BY m.id"
                ).fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to read memories: {e}") from e
        return [self._row_to_memory(row) for row in rows]

    def _where(self, filter: MemoryFilter) -> tuple[str, list[Any]]:
        """Translate a MemoryFilter into a WHERE clause and bound parameters."""
        conditions: list[str] = []
        params: list[Any] = []

        if filter.project is not None:
            conditions.append("m.project = ?")
            params.append(filter.project)

        if filter.type is not None:
            conditions.append("m.type = ?")
            params.append(filter.type)

        if filter.tag is not None:
            conditions.append(
                "EXISTS (SELECT 1 FROM tags t WHERE t.memory_id = m.id AND t.tag = ?)"
            )
            params.append(filter.tag)

        for term in filter.terms:
            conditions.append("(ci_contains(m.title, ?) OR ci_contains(m.content, ?))")
            params.extend([term, term])

        where_clause = "WHERE " + " AND ".join(conditions) if conditions else ""
        return where_clause, params

    def _row_to_memory(self, row: sqlite3.Row, tags: Optional[list[str]] = None) -> MemoryRecord:
        """Convert SQLite row to MemoryRecord."""
        return MemoryRecord(
            id=row["id"],
            title=row["title"],
            content=row["content"],
            type=row["type"] or DEFAULT_TYPE,
            project=row["project"] or DEFAULT_PROJECT,
            created_at=row["created_at"],
            created_iso=row["created_iso"],
            updated_at=row["updated_at"],
            updated_iso=row["updated_iso"],
            tags=tags or [],
        )

    def _with_tags(self, rows: list[sqlite3.Row]) -> list[MemoryRecord]:
        """Convert rows to records, loading all their tags in one query."""
        if not rows:
            return []
        ids = [row["id"] for row in rows]
        tags: dict[int, list[str]] = {memory_id: [] for memory_id in ids}
        for tag_row in self._conn.execute(
            f"SELECT memory_id, tag FROM tags WHERE memory_id IN ({_placeholders(len(ids))}) "
            "ORDER BY tag",
            ids,
        ):
            tags[tag_row[0]].append(tag_row[1])
        return [self._row_to_memory(row, tags[row["id"]]) for row in rows]

    # =========================================================================
    # Tags
    # =========================================================================

    def set_tags(self, memory_id: int, tags: Iterable[str]) -> list[str]:
        """Replace the tag set of a memory.

        Args:
            memory_id: Memory id
            tags: New tags; normalized and deduplicated, [] clears

        Returns:
            The normalized tags written

        Raises:
            NotFoundError: If the memory does not exist
            StorageError: If the write fails
        """
        normalized = normalize_tags(tags)
        with self._lock:
            try:
                if not self._exists(memory_id):
                    raise NotFoundError(f"Memory #{memory_id} not found")
                self._conn.execute("DELETE FROM tags WHERE memory_id = ?", (memory_id,))
                self._write_tags(memory_id, normalized)
                self._conn.commit()
                return normalized
            except sqlite3.Error as e:
                self._conn.rollback()
                raise StorageError(f"Failed to set tags: {e}") from e

    def get_tags(self, memory_id: int) -> set[str]:
        """Return the tag set of a memory (empty if none or missing)."""
        with self._lock:
            try:
                rows = self._conn.execute(
                    "SELECT tag FROM tags WHERE memory_id = ?", (memory_id,)
                ).fetchall()
                return {row[0] for row in rows}
            except sqlite3.Error as e:
                raise StorageError(f"Failed to get tags: {e}") from e

    def list_tag_counts(self, project: Optional[str] = None) -> list[TagCount]:
        """Count distinct records per tag.

        Args:
            project: Only count records in this project

        Returns:
            Tag counts ordered by count DESC, then tag ASC
        """
        where = "WHERE m.project = ?" if not _blank(project) else ""
        params = [project] if where else []
        with self._lock:
            try:
                rows = self._conn.execute(
                    f"""
                    SELECT t.tag, COUNT(DISTINCT t.memory_id) AS count
                    FROM tags t
                    JOIN memories m ON m.id = t.memory_id
                    {where}
                    GROUP BY t.tag
                    ORDER BY count DESC, t.tag ASC
                    """,
                    params,
                ).fetchall()
                return [TagCount(tag=row[0], count=row[1]) for row in rows]
            except sqlite3.Error as e:
                raise StorageError(f"Failed to list tags: {e}") from e

    def _write_tags(self, memory_id: int, tags: list[str]) -> None:
        if tags:
            self._conn.executemany(
                "INSERT OR IGNORE INTO tags (memory_id, tag) VALUES (?, ?)",
                [(memory_id, tag) for tag in tags],
            )

    def _exists(self, memory_id: int) -> bool:
        row = self._conn.execute("SELECT 1 FROM memories WHERE id = ?", (memory_id,)).fetchone()
        return row is not None

    # =========================================================================
    # Embeddings
    # =========================================================================

    def put_embedding(self, memory_id: int, vector: list[float]) -> bool:
        """Store (or replace) the vector of a memory.

        The insert only happens while the memory exists, so a late write for
        a memory deleted in the meantime is discarded.

        Returns:
            True if the vector was stored
        """
        with self._lock:
            try:
                cursor = self._conn.execute(
                    """
                    INSERT OR REPLACE INTO embeddings (memory_id, vector)
                    SELECT ?, ? WHERE EXISTS (SELECT 1 FROM memories WHERE id = ?)
                    """,
                    (memory_id, sqlite_vec.serialize_float32(vector), memory_id),
                )
                self._conn.commit()
                return cursor.rowcount > 0
            except sqlite3.Error as e:
                self._conn.rollback()
                raise StorageError(f"Failed to store embedding: {e}") from e

    def delete_embedding(self, memory_id: int) -> bool:
        """Remove the vector of a memory. Returns True if one existed."""
        with self._lock:
            try:
                cursor = self._conn.execute(
                    "DELETE FROM embeddings WHERE memory_id = ?", (memory_id,)
                )
                self._conn.commit()
                return cursor.rowcount > 0
            except sqlite3.Error as e:
                self._conn.rollback()
                raise StorageError(f"Failed to delete embedding: {e}") from e

    def iter_embeddings(self, project: Optional[str] = None) -> list[tuple[int, np.ndarray]]:
        """Load stored vectors, optionally restricted to one project.

        Returns:
            (memory_id, float32 vector) pairs
        """
        where = "WHERE m.project = ?" if not _blank(project) else ""
        params = [project] if where else []
        with self._lock:
            try:
                rows = self._conn.execute(
                    f"""
                    SELECT e.memory_id, e.vector
                    FROM embeddings e
                    JOIN memories m ON m.id = e.memory_id
                    {where}
                    """,
                    params,
                ).fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to read embeddings: {e}") from e
        return [(row[0], np.frombuffer(row[1], dtype=np.float32)) for row in rows]

    # =========================================================================
    # Statistics
    # =========================================================================

    def stats(self) -> StoreStats:
        """Collect totals, per-project and per-type counts and file size."""
        with self._lock:
            try:
                total = self._conn.execute("SELECT COUNT(*) FROM memories").fetchone()[0]
                embedded = self._conn.execute("SELECT COUNT(*) FROM embeddings").fetchone()[0]
                tag_total = self._conn.execute(
                    "SELECT COUNT(DISTINCT tag) FROM tags"
                ).fetchone()[0]
                by_project = {
                    row[0]: row[1]
                    for row in self._conn.execute(
                        "SELECT project, COUNT(*) AS count FROM memories "
                        "GROUP BY project ORDER BY count DESC, project"
                    )
                }
                by_type = {
                    row[0]: row[1]
                    for row in self._conn.execute(
                        "SELECT type, COUNT(*) AS count FROM memories "
                        "GROUP BY type ORDER BY count DESC, type"
                    )
                }
                # float32 vectors: 4 bytes per dimension
                dims = {
                    row[0] // 4: row[1]
                    for row in self._conn.execute(
                        "SELECT length(vector), COUNT(*) FROM embeddings GROUP BY length(vector)"
                    )
                }
                version = current_version(self._conn)
            except sqlite3.Error as e:
                raise StorageError(f"Failed to collect stats: {e}") from e

        size = 0
        if isinstance(self.db_path, Path) and self.db_path.exists():
            size = self.db_path.stat().st_size

        return StoreStats(
            total_memories=total,
            total_embeddings=embedded,
            total_tags=tag_total,
            by_project=by_project,
            by_type=by_type,
            embedding_dims=dims,
            db_path=str(self.db_path),
            db_size_bytes=size,
            schema_version=version,
        )
