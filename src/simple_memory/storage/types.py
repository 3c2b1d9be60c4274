"""Storage-facing types.

MemoryFilter is the structured predicate handed to SQLiteStore; the store
translates it into SQL. Callers never assemble query strings.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from simple_memory.types.memory import normalize_tag


@dataclass(frozen=True)
class MemoryFilter:
    """Conjunctive filter over memory records.

    Attributes:
        project: Exact project match
        type: Exact type match
        tag: Exact match on the normalized tag form
        terms: Every term must be a case-insensitive substring of title or content
    """

    project: Optional[str] = None
    type: Optional[str] = None
    tag: Optional[str] = None
    terms: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Blank filter values mean "no filter"
        for name in ("project", "type"):
            value = getattr(self, name)
            if value is not None and not value.strip():
                object.__setattr__(self, name, None)
        if self.tag is not None:
            normalized = normalize_tag(self.tag)
            object.__setattr__(self, "tag", normalized or None)
        object.__setattr__(self, "terms", tuple(t for t in self.terms if t))

    @classmethod
    def from_query(
        cls,
        query: Optional[str],
        project: Optional[str] = None,
        type: Optional[str] = None,
        tag: Optional[str] = None,
    ) -> "MemoryFilter":
        """Build a filter, splitting the query on whitespace into terms."""
        terms = tuple(query.split()) if query else ()
        return cls(project=project, type=type, tag=tag, terms=terms)


@dataclass(frozen=True)
class TagCount:
    """A tag and the number of distinct records carrying it."""

    tag: str
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"tag": self.tag, "count": self.count}


@dataclass
class StoreStats:
    """Statistics about the memory store.

    Attributes:
        total_memories: Number of records
        total_embeddings: Number of records with a stored vector
        total_tags: Number of distinct tags
        by_project: Record count per project, largest first
        by_type: Record count per type, largest first
        embedding_dims: Vector count per dimensionality
        db_path: Database file path
        db_size_bytes: Database file size (0 for in-memory stores)
        schema_version: Highest applied migration
    """

    total_memories: int = 0
    total_embeddings: int = 0
    total_tags: int = 0
    by_project: dict[str, int] = field(default_factory=dict)
    by_type: dict[str, int] = field(default_factory=dict)
    embedding_dims: dict[int, int] = field(default_factory=dict)
    db_path: str = ""
    db_size_bytes: int = 0
    schema_version: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_memories": self.total_memories,
            "total_embeddings": self.total_embeddings,
            "total_tags": self.total_tags,
            "by_project": dict(self.by_project),
            "by_type": dict(self.by_type),
            "embedding_dims": {str(k): v for k, v in self.embedding_dims.items()},
            "db_path": self.db_path,
            "db_size_bytes": self.db_size_bytes,
            "schema_version": self.schema_version,
        }
