"""Search result types for simple-memory.

This module defines the types that describe how a search was executed:
- SearchMode: requested search strategy
- SearchLabel: which strategy actually produced the results
- ScoredId: a vector-search hit before it is resolved to a record
- SearchOutcome: the ranked records plus their label
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from simple_memory.types.memory import MemoryRecord

logger = logging.getLogger(__name__)


class SearchMode(str, Enum):
    """Requested search strategy.

    - AUTO: keyword first, vector when keyword recall is weak
    - KEYWORD: keyword only
    - FTS: alias of KEYWORD kept for older clients
    - VECTOR: vector only
    """

    AUTO = "auto"
    KEYWORD = "keyword"
    FTS = "fts"
    VECTOR = "vector"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SearchMode":
        """Parse a mode string case-insensitively; unknown values mean AUTO."""
        if value is None or not str(value).strip():
            return cls.AUTO
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logger.warning(f"Unknown search mode {value!r}, using auto")
            return cls.AUTO

    @property
    def runs_keyword(self) -> bool:
        return self in (SearchMode.AUTO, SearchMode.KEYWORD, SearchMode.FTS)


class SearchLabel(str, Enum):
    """Which strategy produced a result set."""

    RECENT = "Recent"
    KEYWORD = "Keyword"
    VECTOR = "Vector"
    KEYWORD_VECTOR = "Keyword+Vector"


@dataclass(frozen=True)
class ScoredId:
    """Vector-search hit: record id and cosine similarity."""

    id: int
    score: float


@dataclass
class SearchOutcome:
    """Ranked search results.

    Attributes:
        records: Result records in rank order
        label: Strategy that produced them
        query: The query string, None for a recent-memories listing
        scores: Cosine similarity per record id for vector hits
    """

    records: list[MemoryRecord]
    label: SearchLabel
    query: Optional[str] = None
    scores: dict[int, float] = field(default_factory=dict)

    @property
    def header(self) -> str:
        if self.query is None:
            return "Recent memories"
        return f'Search: "{self.query}" ({self.label.value})'

    def to_dict(self) -> dict[str, Any]:
        records = []
        for record in self.records:
            data = record.to_dict(full=False)
            if record.id in self.scores:
                data["similarity"] = round(self.scores[record.id], 4)
            records.append(data)
        return {
            "query": self.query,
            "label": self.label.value,
            "total": len(self.records),
            "records": records,
        }
