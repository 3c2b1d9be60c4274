"""Document chunking for the markdown importer."""

from simple_memory.chunking.base import Chunk
from simple_memory.chunking.markdown_chunker import MarkdownChunker

__all__ = ["Chunk", "MarkdownChunker"]
