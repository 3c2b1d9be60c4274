"""Memory tools for the simple-memory MCP server.

This module provides the seven memory tools:
- mem_save: Store a memory (optionally titled, typed and tagged)
- mem_search: Keyword search with semantic fallback, or recent memories
- mem_get: Fetch full records by id
- mem_list: List recent memories with filters
- mem_update: Change fields of a memory
- mem_delete: Delete memories by id
- mem_tags: List tags with usage counts

Every tool returns an envelope:
    {"success": True, "data": {...}}
    {"success": False, "error": "...", "error_type": "ValidationError"}
"""

import logging
from collections.abc import Iterable
from typing import Any, Optional, Union

from simple_memory.errors import NotFoundError, SimpleMemoryError, ValidationError
from simple_memory.storage.hybrid import HybridStore
from simple_memory.types import MemoryRecord, SearchOutcome

# MCP servers must never write to stdout (corrupts JSON-RPC)
logger = logging.getLogger(__name__)

IdsInput = Union[int, str, Iterable[Union[int, str]], None]


def parse_ids(ids: IdsInput) -> list[int]:
    """Coerce ids given as a list, a single id or a comma-separated string.

    Raises:
        ValidationError: If no ids are given or one is not an integer
    """
    if ids is None:
        raise ValidationError("ids is required")
    if isinstance(ids, (int, str)):
        items: list[Any] = str(ids).split(",")
    else:
        items = list(ids)

    parsed: list[int] = []
    for item in items:
        if isinstance(item, str):
            item = item.strip()
            if not item:
                continue
        if isinstance(item, bool):
            raise ValidationError(f"Invalid memory id: {item!r}")
        try:
            parsed.append(int(item))
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid memory id: {item!r}") from e

    if not parsed:
        raise ValidationError("ids is required")
    return parsed


def render_records(records: list[MemoryRecord], header: str, full: bool = False) -> str:
    """Human-readable rendering of a result list."""
    if not records:
        return f"{header}: no memories found"
    blocks = "\n\n".join(record.render(full=full) for record in records)
    return f"{header} ({len(records)})\n\n{blocks}"


class MemoryTools:
    """Tool implementations over a local HybridStore.

    Args:
        hybrid_store: HybridStore for searches and embedding-aware writes

    Example:
        >>> tools = MemoryTools(hybrid_store)
        >>> result = await tools.mem_save(text="Deploys run from main", tags=["ops"])
        >>> if result["success"]:
        ...     print(f"Stored memory #{result['data']['id']}")
    """

    def __init__(self, hybrid_store: HybridStore) -> None:
        self._hybrid = hybrid_store
        self._store = hybrid_store.store

    @staticmethod
    def _success(data: dict[str, Any]) -> dict[str, Any]:
        return {"success": True, "data": data}

    @staticmethod
    def _failure(tool: str, error: Exception) -> dict[str, Any]:
        if isinstance(error, SimpleMemoryError):
            logger.info(f"{tool} rejected: {error}")
        else:
            logger.error(f"{tool} failed: {error}", exc_info=True)
        return {"success": False, "error": str(error), "error_type": type(error).__name__}

    def _outcome_data(self, outcome: SearchOutcome) -> dict[str, Any]:
        data = outcome.to_dict()
        data["text"] = render_records(outcome.records, outcome.header)
        return data

    async def mem_save(
        self,
        text: Optional[str] = None,
        title: Optional[str] = None,
        project: Optional[str] = None,
        type: Optional[str] = None,
        tags: Optional[list[str]] = None,
        content: Optional[str] = None,
    ) -> dict[str, Any]:
        """Save a memory.

        Args:
            text: Memory content (``content`` is accepted as an alias)
            title: Optional title, defaults to the first 80 characters
            project: Project namespace (default: 'default')
            type: memory, decision, error, session_summary, todo, snippet, ...
            tags: Optional tags (normalized to lower case)

        Returns:
            Envelope with id, project, type, title and normalized tags
        """
        try:
            body = text if text is not None else content
            if not isinstance(body, str) or not body.strip():
                raise ValidationError("text is required")

            record = await self._hybrid.save(
                body, title=title, project=project, type=type, tags=tags
            )
            return self._success(
                {
                    "id": record.id,
                    "project": record.project,
                    "type": record.type,
                    "title": record.title,
                    "tags": record.tags,
                    "text": f"Saved #{record.id} ({record.type}) in {record.project}",
                }
            )
        except Exception as e:
            return self._failure("mem_save", e)

    async def mem_search(
        self,
        query: Optional[str] = None,
        limit: Optional[int] = None,
        project: Optional[str] = None,
        mode: Optional[str] = None,
        tag: Optional[str] = None,
        type: Optional[str] = None,
    ) -> dict[str, Any]:
        """Search memories; without a query, list the most recent ones.

        Returns:
            Envelope with query, label, total and record previews
        """
        try:
            outcome = await self._hybrid.search(
                query=query, limit=limit, project=project, type=type, tag=tag, mode=mode
            )
            return self._success(self._outcome_data(outcome))
        except Exception as e:
            return self._failure("mem_search", e)

    async def mem_get(self, ids: IdsInput = None) -> dict[str, Any]:
        """Fetch full records by id; unknown ids are skipped."""
        try:
            records = self._store.get_by_ids(parse_ids(ids))
            return self._success(
                {
                    "total": len(records),
                    "records": [record.to_dict(full=True) for record in records],
                    "text": render_records(records, "Memories", full=True),
                }
            )
        except Exception as e:
            return self._failure("mem_get", e)

    async def mem_list(
        self,
        limit: Optional[int] = None,
        project: Optional[str] = None,
        type: Optional[str] = None,
        tag: Optional[str] = None,
    ) -> dict[str, Any]:
        """List recent memories, newest first."""
        try:
            outcome = await self._hybrid.search(
                query=None, limit=limit, project=project, type=type, tag=tag
            )
            return self._success(self._outcome_data(outcome))
        except Exception as e:
            return self._failure("mem_list", e)

    async def mem_update(
        self,
        id: Optional[int] = None,
        text: Optional[str] = None,
        title: Optional[str] = None,
        type: Optional[str] = None,
        project: Optional[str] = None,
        tags: Optional[list[str]] = None,
        content: Optional[str] = None,
    ) -> dict[str, Any]:
        """Update a memory. Tags, when given, replace the existing set.

        Returns:
            Envelope with id, updated field names, reembedding flag and the record
        """
        try:
            if id is None or isinstance(id, bool):
                raise ValidationError("id is required")
            (memory_id,) = parse_ids([id])
            body = text if text is not None else content

            record, reembedding = await self._hybrid.update(
                memory_id, content=body, title=title, type=type, project=project, tags=tags
            )
            updated = [
                name
                for name, value in (
                    ("content", body),
                    ("title", title),
                    ("type", type),
                    ("project", project),
                    ("tags", tags),
                )
                if value is not None
            ]
            return self._success(
                {
                    "id": record.id,
                    "updated": updated,
                    "reembedding": reembedding,
                    "record": record.to_dict(full=True),
                    "text": f"Updated #{record.id}: {', '.join(updated)}",
                }
            )
        except Exception as e:
            return self._failure("mem_update", e)

    async def mem_delete(self, ids: IdsInput = None) -> dict[str, Any]:
        """Delete memories with their tags and vectors.

        Fails with NotFoundError when none of the ids exist.
        """
        try:
            wanted = parse_ids(ids)
            deleted = self._store.delete(wanted)
            if deleted == 0:
                raise NotFoundError(f"No memories found for ids {wanted}")
            return self._success(
                {"deleted": deleted, "ids": wanted, "text": f"Deleted {deleted} memory(ies)"}
            )
        except Exception as e:
            return self._failure("mem_delete", e)

    async def mem_tags(self, project: Optional[str] = None) -> dict[str, Any]:
        """List tags with the number of memories carrying each."""
        try:
            counts = self._store.list_tag_counts(project)
            if counts:
                text = "\n".join(f"{c.tag} ({c.count})" for c in counts)
            else:
                text = "No tags"
            return self._success(
                {"project": project, "tags": [c.to_dict() for c in counts], "text": text}
            )
        except Exception as e:
            return self._failure("mem_tags", e)

    async def stats(self) -> dict[str, Any]:
        """Store statistics plus embedding status."""
        try:
            data = self._store.stats().to_dict()
            data["vector_search"] = self._hybrid.vector_enabled
            return self._success(data)
        except Exception as e:
            return self._failure("stats", e)
