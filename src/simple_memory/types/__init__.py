"""Type system for simple-memory.

The key types are:
- MemoryRecord: a stored memory with its tags
- SearchMode / SearchLabel: requested and effective search strategies
- SearchOutcome: ranked results of a search
- ScoredId: vector hit before resolution to a record

Example:
    >>> from simple_memory.types import normalize_tags
    >>> normalize_tags(["BUG", " Auth ", ""])
    ['bug', 'auth']
"""

from simple_memory.types.memory import (
    MemoryRecord,
    derive_title,
    iso_from_ms,
    make_preview,
    normalize_tag,
    normalize_tags,
    now_ms,
)
from simple_memory.types.search_result import ScoredId, SearchLabel, SearchMode, SearchOutcome

__all__ = [
    "MemoryRecord",
    "ScoredId",
    "SearchLabel",
    "SearchMode",
    "SearchOutcome",
    "derive_title",
    "iso_from_ms",
    "make_preview",
    "normalize_tag",
    "normalize_tags",
    "now_ms",
]
