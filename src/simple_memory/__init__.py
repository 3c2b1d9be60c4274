"""simple-memory - Persistent memory for AI assistants.

A small memory store exposed as MCP tools, backed by SQLite, with optional
embedding-based similarity search layered on top of keyword search.
"""

__version__ = "0.5.0"
__all__ = ["__version__"]
