"""Chunk data structure shared by importers."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Chunk:
    """Immutable piece of an imported document.

    Attributes:
        text: Chunk content
        header_path: Enclosing headers joined with " > " (used as memory title)
    """

    text: str
    header_path: str

    def __post_init__(self) -> None:
        if not self.text or not self.text.strip():
            raise ValueError("Chunk text cannot be empty or whitespace-only")
