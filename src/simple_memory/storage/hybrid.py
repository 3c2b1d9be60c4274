"""Hybrid storage layer: keyword search with vector fallback.

This module provides a HybridStore that wraps SQLiteStore, providing
a high-level API for memory operations with background embedding refresh.

Key architecture:
- SQLiteStore is the source of truth for records, tags and vectors
- Vectors are produced off the request path by EmbeddingWorker
- Keyword search is a case-insensitive AND over whitespace tokens
- Vector search is brute-force cosine similarity over stored vectors

Search policy:
    1. No query: most recent records matching the filters ("Recent")
    2. keyword/fts/auto: keyword matching with all filters
    3. vector, or auto with fewer than 3 keyword hits: cosine ranking,
       when a provider is configured and the query can be embedded
    4. Merge: keyword hits first, then unseen vector hits in rank order

Usage:
    >>> hybrid = HybridStore(store, adapter, worker)
    >>> record = await hybrid.save("JWT refresh tokens live 7 days", tags=["auth"])
    >>> outcome = await hybrid.search("refresh token", project="api")
"""

import asyncio
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Optional, Union

import numpy as np

from simple_memory.constants import DEFAULT_LIMIT, VECTOR_FALLBACK_THRESHOLD
from simple_memory.storage.sqlite_store import SQLiteStore
from simple_memory.storage.types import MemoryFilter
from simple_memory.types import MemoryRecord, ScoredId, SearchLabel, SearchMode, SearchOutcome

if TYPE_CHECKING:
    from simple_memory.embedding.adapter import EmbeddingAdapter
    from simple_memory.embedding.worker import EmbeddingWorker

logger = logging.getLogger(__name__)

Vector = Union[np.ndarray, list[float]]


def cosine_similarity(a: Vector, b: Vector) -> float:
    """Cosine similarity of two vectors, 0.0 when either has zero norm.

    Example:
        >>> cosine_similarity([1.0, 0.0], [1.0, 0.0])
        1.0
        >>> cosine_similarity([1.0, 0.0], [0.0, 0.0])
        0.0
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def embedding_text(title: Optional[str], content: str) -> str:
    """Text embedded for a record: title and content on separate lines."""
    return f"{title or ''}\n{content}"


class HybridStore:
    """Storage layer wrapping SQLiteStore with hybrid search.

    Args:
        sqlite_store: SQLiteStore instance for all storage operations
        adapter: Embedding adapter (query embeddings); None disables vectors
        worker: Background worker refreshing record vectors; None disables refresh
        default_limit: Result count used when a caller gives none (or < 1)
    """

    def __init__(
        self,
        sqlite_store: SQLiteStore,
        adapter: Optional["EmbeddingAdapter"] = None,
        worker: Optional["EmbeddingWorker"] = None,
        default_limit: int = DEFAULT_LIMIT,
    ):
        self._sqlite = sqlite_store
        self._adapter = adapter
        self._worker = worker
        self._default_limit = default_limit

    @property
    def store(self) -> SQLiteStore:
        return self._sqlite

    @property
    def vector_enabled(self) -> bool:
        return self._adapter is not None and self._adapter.available

    def resolve_limit(self, limit: Optional[int]) -> int:
        """Use the default limit for missing or non-positive values."""
        if limit is None or limit < 1:
            return self._default_limit
        return limit

    # =========================================================================
    # Writes
    # =========================================================================

    async def save(
        self,
        content: str,
        title: Optional[str] = None,
        project: Optional[str] = None,
        type: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> MemoryRecord:
        """Store a new memory and schedule its embedding.

        Returns:
            The stored record (with defaults applied and tags normalized)

        Raises:
            ValidationError: If content is empty
            StorageError: If the insert fails
        """
        memory_id = self._sqlite.create(content, title=title, project=project, type=type, tags=tags)
        record = self._sqlite.get_by_ids([memory_id])[0]
        self._schedule(record)
        return record

    async def update(
        self,
        memory_id: int,
        *,
        content: Optional[str] = None,
        title: Optional[str] = None,
        type: Optional[str] = None,
        project: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> tuple[MemoryRecord, bool]:
        """Update a memory, re-embedding it when content or title changed.

        Returns:
            (updated record, whether an embedding refresh was scheduled)

        Raises:
            NoOpError: If no field was supplied
            NotFoundError: If the memory does not exist
        """
        text_changed = self._sqlite.update(
            memory_id, content=content, title=title, type=type, project=project, tags=tags
        )
        record = self._sqlite.get_by_ids([memory_id])[0]
        reembedding = text_changed and self._schedule(record)
        return record, reembedding

    def reembed_all(self) -> int:
        """Schedule an embedding refresh for every record.

        Returns:
            Number of jobs queued
        """
        scheduled = 0
        for record in self._sqlite.all_records():
            if self._schedule(record):
                scheduled += 1
        logger.info(f"Scheduled {scheduled} embedding refresh job(s)")
        return scheduled

    def _schedule(self, record: MemoryRecord) -> bool:
        if self._worker is None:
            return False
        text = embedding_text(record.title, record.content)
        return self._worker.schedule(record.id, text) is not None

    # =========================================================================
    # Search
    # =========================================================================

    async def search(
        self,
        query: Optional[str] = None,
        limit: Optional[int] = None,
        project: Optional[str] = None,
        type: Optional[str] = None,
        tag: Optional[str] = None,
        mode: Union[SearchMode, str, None] = SearchMode.AUTO,
    ) -> SearchOutcome:
        """Search memories.

        Args:
            query: Free text; None or blank lists recent memories
            limit: Maximum results (default when missing or < 1)
            project: Restrict to a project
            type: Restrict to a type (keyword/list results only)
            tag: Restrict to a tag (keyword/list results only)
            mode: auto, keyword, fts or vector (case-insensitive)

        Returns:
            SearchOutcome with records in rank order and the producing label
        """
        limit = self.resolve_limit(limit)
        search_mode = mode if isinstance(mode, SearchMode) else SearchMode.parse(mode)

        if query is None or not query.strip():
            records = self._sqlite.list_memories(
                MemoryFilter(project=project, type=type, tag=tag), limit
            )
            return SearchOutcome(records=records, label=SearchLabel.RECENT)

        query = query.strip()
        keyword: list[MemoryRecord] = []
        if search_mode.runs_keyword:
            keyword = self._sqlite.search_keyword(
                MemoryFilter.from_query(query, project=project, type=type, tag=tag), limit
            )

        hits: list[ScoredId] = []
        wants_vector = search_mode == SearchMode.VECTOR or (
            search_mode == SearchMode.AUTO and len(keyword) < VECTOR_FALLBACK_THRESHOLD
        )
        if wants_vector and self.vector_enabled:
            hits = await asyncio.to_thread(self.vector_search, query, project, limit)

        return self._merge(query, keyword, hits, limit)

    def vector_search(self, query: str, project: Optional[str], limit: int) -> list[ScoredId]:
        """Rank stored vectors by cosine similarity to the query embedding.

        The candidate pool is restricted by project only. Vectors whose
        dimensionality differs from the query vector are skipped.
        """
        if self._adapter is None:
            return []
        vector = self._adapter.embed(query)
        if vector is None:
            return []

        query_vec = np.asarray(vector, dtype=np.float64)
        ids: list[int] = []
        rows: list[np.ndarray] = []
        skipped = 0
        for memory_id, stored in self._sqlite.iter_embeddings(project):
            if stored.shape != query_vec.shape:
                skipped += 1
                continue
            ids.append(memory_id)
            rows.append(stored)

        if skipped:
            logger.warning(
                f"Skipped {skipped} stored vector(s) with dimensionality != {query_vec.shape[0]}; "
                "run 'simple-memory reembed' after changing embedding providers"
            )
        if not rows:
            return []

        matrix = np.vstack(rows).astype(np.float64)
        denom = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query_vec)
        scores = np.divide(
            matrix @ query_vec, denom, out=np.zeros(len(ids), dtype=np.float64), where=denom > 0
        )
        order = np.argsort(-scores, kind="stable")[:limit]
        return [ScoredId(id=ids[i], score=float(scores[i])) for i in order]

    def _merge(
        self,
        query: str,
        keyword: list[MemoryRecord],
        hits: list[ScoredId],
        limit: int,
    ) -> SearchOutcome:
        scores = {hit.id: hit.score for hit in hits}

        if hits:
            seen = {record.id for record in keyword}
            vector_records = self._sqlite.get_by_ids(hit.id for hit in hits if hit.id not in seen)
            if keyword:
                return SearchOutcome(
                    records=(keyword + vector_records)[:limit],
                    label=SearchLabel.KEYWORD_VECTOR,
                    query=query,
                    scores=scores,
                )
            if vector_records:
                return SearchOutcome(
                    records=vector_records[:limit],
                    label=SearchLabel.VECTOR,
                    query=query,
                    scores=scores,
                )

        return SearchOutcome(records=keyword, label=SearchLabel.KEYWORD, query=query)
