"""Header-aware markdown chunker used by the import command."""

import re
from dataclasses import dataclass, field

from simple_memory.chunking.base import Chunk

_HEADER = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
_FENCE = re.compile(r"^\s*(```|~~~)")


@dataclass
class _Section:
    header_path: str
    lines: list[str] = field(default_factory=list)

    @property
    def content(self) -> str:
        return "\n".join(self.lines).strip()


class MarkdownChunker:
    """Splits markdown into one chunk per header section.

    Tracks the header hierarchy (H1-H6) so every chunk knows its header path,
    e.g. "Runbook > Deploys > Rollback". Headers inside fenced code blocks are
    treated as content. Sections longer than max_chars are split on blank
    lines. Content before the first header becomes a section titled after
    the document.

    Attributes:
        max_chars: Soft limit on characters per chunk
    """

    def __init__(self, max_chars: int = 4000):
        if max_chars <= 0:
            raise ValueError(f"max_chars must be positive, got {max_chars}")
        self.max_chars = max_chars

    def chunk(self, content: str, document_title: str = "Document") -> list[Chunk]:
        """Split markdown content into chunks.

        Args:
            content: Markdown text
            document_title: Header path for content preceding the first header

        Returns:
            Chunks in document order

        Raises:
            ValueError: If content is empty
        """
        if not content or not content.strip():
            raise ValueError("Content cannot be empty")

        return [
            Chunk(text=text, header_path=section.header_path)
            for section in self._parse_sections(content, document_title)
            for text in self._split(section.content)
        ]

    def _parse_sections(self, content: str, document_title: str) -> list[_Section]:
        header_stack: list[tuple[int, str]] = []
        current = _Section(header_path=document_title)
        sections: list[_Section] = []
        in_fence = False

        for line in content.splitlines():
            if _FENCE.match(line):
                in_fence = not in_fence

            match = None if in_fence else _HEADER.match(line)
            if match is None:
                current.lines.append(line)
                continue

            if current.content:
                sections.append(current)

            level = len(match.group(1))
            # Remove headers at same or deeper level
            while header_stack and header_stack[-1][0] >= level:
                header_stack.pop()
            header_stack.append((level, match.group(2).strip()))

            current = _Section(header_path=" > ".join(title for _, title in header_stack))

        if current.content:
            sections.append(current)
        return sections

    def _split(self, text: str) -> list[str]:
        """Split oversized text on paragraph boundaries."""
        if len(text) <= self.max_chars:
            return [text]

        parts: list[str] = []
        current: list[str] = []
        length = 0
        for para in (p.strip() for p in re.split(r"\n\s*\n", text)):
            if not para:
                continue
            if current and length + len(para) + 2 > self.max_chars:
                parts.append("\n\n".join(current))
                current, length = [], 0
            current.append(para)
            length += len(para) + 2
        if current:
            parts.append("\n\n".join(current))
        return parts
