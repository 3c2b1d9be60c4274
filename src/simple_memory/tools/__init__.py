"""Tool implementations for the simple-memory MCP server.

- MemoryTools: executes tools against the local SQLite store
- RemoteTools: forwards tools to a remote simple-memory HTTP API
"""

from simple_memory.tools.memory_tools import MemoryTools, parse_ids, render_records
from simple_memory.tools.remote_tools import RemoteTools

__all__ = [
    "MemoryTools",
    "RemoteTools",
    "parse_ids",
    "render_records",
]
