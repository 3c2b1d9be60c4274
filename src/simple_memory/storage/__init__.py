"""Storage layer for simple-memory.

This module provides record, tag and vector storage in a single SQLite file:
- SQLiteStore: records, tags and float32 vectors, keyword matching in SQL
- HybridStore: keyword search with cosine-similarity vector fallback
- migrations: versioned, additive, idempotent schema evolution

Example:
    >>> from simple_memory.storage import MemoryFilter, SQLiteStore
    >>> store = SQLiteStore(":memory:")
    >>> mem_id = store.create("Python is great", project="notes", tags=["lang"])
    >>> store.list_memories(MemoryFilter(project="notes", tag="LANG"))
"""

from simple_memory.storage.hybrid import HybridStore, cosine_similarity, embedding_text
from simple_memory.storage.migrations import MIGRATIONS, Migration, current_version, migrate
from simple_memory.storage.sqlite_store import SQLiteStore
from simple_memory.storage.types import MemoryFilter, StoreStats, TagCount

__all__ = [
    "HybridStore",
    "MIGRATIONS",
    "MemoryFilter",
    "Migration",
    "SQLiteStore",
    "StoreStats",
    "TagCount",
    "cosine_similarity",
    "current_version",
    "embedding_text",
    "migrate",
]
