"""MemoryRecord type and record-level helpers.

A memory record is a titled piece of text in a project namespace, with an
optional set of tags. The helpers here own the normalization rules shared by
the store, the tools and the HTTP API:

- tags are trimmed, lower-cased, deduplicated; empty tags are dropped
- an omitted title is derived from the first 80 characters of content
- timestamps are epoch milliseconds plus an ISO-8601 UTC string
"""

import time
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from simple_memory.constants import PREVIEW_CHARS, TITLE_MAX_CHARS


def normalize_tag(tag: str) -> str:
    """Return the canonical form of a tag (may be empty)."""
    return tag.strip().lower()


def normalize_tags(tags: Optional[Iterable[str]]) -> list[str]:
    """Normalize, deduplicate and drop empty tags, keeping first-seen order.

    Example:
        >>> normalize_tags(["BUG", " Auth ", "", "  ", "bug"])
        ['bug', 'auth']
    """
    if not tags:
        return []
    seen: dict[str, None] = {}
    for tag in tags:
        if not isinstance(tag, str):
            continue
        normalized = normalize_tag(tag)
        if normalized:
            seen.setdefault(normalized, None)
    return list(seen)


def derive_title(content: str) -> str:
    """Derive a title from content by truncating to TITLE_MAX_CHARS."""
    return content[:TITLE_MAX_CHARS]


def make_preview(content: str, max_chars: int = PREVIEW_CHARS) -> str:
    """Truncate content for list views and flatten newlines."""
    return content[:max_chars].replace("\r\n", " ").replace("\n", " ")


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


def iso_from_ms(millis: int) -> str:
    """Format epoch milliseconds as ISO-8601 UTC, e.g. 2025-01-02T03:04:05.678Z."""
    dt = datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class MemoryRecord(BaseModel):
    """A stored memory with its tag set.

    Attributes:
        id: Store-assigned identifier (never reused)
        title: Short title; derived from content when omitted at creation
        content: Memory text
        type: Free-form category (memory, decision, error, ...)
        project: Namespace
        created_at: Creation time in epoch milliseconds
        created_iso: Creation time as ISO-8601 string
        updated_at: Last update time in epoch milliseconds, None if never updated
        updated_iso: Last update time as ISO-8601 string
        tags: Sorted normalized tags
    """

    model_config = ConfigDict(frozen=False)

    id: int
    title: Optional[str] = None
    content: str
    type: str
    project: str
    created_at: int
    created_iso: str
    updated_at: Optional[int] = None
    updated_iso: Optional[str] = None
    tags: list[str] = Field(default_factory=list)

    def to_dict(self, full: bool = True) -> dict[str, Any]:
        """Serialize for tool responses.

        Args:
            full: Include full content; otherwise a flattened preview

        Returns:
            Dictionary without null update fields
        """
        data: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "project": self.project,
            "created_at": self.created_at,
            "created_iso": self.created_iso,
            "title": self.title,
            "tags": list(self.tags),
        }
        if self.updated_at is not None:
            data["updated_at"] = self.updated_at
            data["updated_iso"] = self.updated_iso
        if full:
            data["content"] = self.content
        else:
            data["preview"] = make_preview(self.content)
        return data

    def render(self, full: bool = False) -> str:
        """Render as the three-line text block used in tool output."""
        updated = f" (updated: {self.updated_iso})" if self.updated_iso else ""
        tags = f" [{', '.join(self.tags)}]" if self.tags else ""
        body = self.content if full else make_preview(self.content)
        return (
            f"#{self.id} | {self.type} | {self.project} | {self.created_iso}{updated}\n"
            f"  {self.title or '(no title)'}{tags}\n"
            f"  {body}"
        )
