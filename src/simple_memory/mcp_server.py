"""simple-memory MCP server module.

This module builds the FastMCP server and registers the seven memory tools
against an explicitly supplied tools object: MemoryTools for a local store,
RemoteTools for proxy mode. Nothing here holds a global store.

CRITICAL: MCP servers using stdio transport must NEVER write to stdout
as it corrupts JSON-RPC messages. All logging goes to stderr.
"""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any, Optional, Union

from mcp.server.fastmcp import FastMCP

from simple_memory.constants import SERVER_NAME
from simple_memory.tools.memory_tools import MemoryTools
from simple_memory.tools.remote_tools import RemoteTools

# MCP servers must never write to stdout (corrupts JSON-RPC)
logger = logging.getLogger(__name__)

Tools = Union[MemoryTools, RemoteTools]
Lifespan = Callable[[FastMCP], AbstractAsyncContextManager[None]]


def closing_lifespan(tools: RemoteTools) -> Lifespan:
    """Lifespan hook that closes the proxy's HTTP client when the server stops.

    The client is closed inside the server's own event loop, before
    mcp.run() returns.
    """

    @asynccontextmanager
    async def lifespan(server: FastMCP) -> AsyncIterator[None]:
        try:
            yield
        finally:
            await tools.close()
            logger.debug("Closed remote API client")

    return lifespan


def build_server(
    tools: Tools, name: str = SERVER_NAME, lifespan: Optional[Lifespan] = None
) -> FastMCP:
    """Create a FastMCP server exposing the memory tools.

    Args:
        tools: Tool implementation the handlers delegate to
        name: Server name announced to MCP clients
        lifespan: Optional startup/shutdown hook (see closing_lifespan)

    Returns:
        Configured FastMCP instance (call .run(transport="stdio"))
    """
    mcp = FastMCP(name, lifespan=lifespan)

    @mcp.tool()
    async def mem_save(
        text: str,
        title: Optional[str] = None,
        project: Optional[str] = None,
        type: Optional[str] = None,
        tags: Optional[list[str]] = None,
    ) -> dict[str, Any]:
        """Save a memory for later recall.

        Use for decisions, errors and their fixes, session summaries, todos
        and snippets worth remembering across sessions.

        Args:
            text: Memory content
            title: Short title (defaults to the first 80 characters of text)
            project: Project namespace (default: "default")
            type: memory, decision, error, session_summary, todo or snippet
            tags: Tags for filtering (case-insensitive)
        """
        return await tools.mem_save(text=text, title=title, project=project, type=type, tags=tags)

    @mcp.tool()
    async def mem_search(
        query: Optional[str] = None,
        limit: int = 20,
        project: Optional[str] = None,
        mode: str = "auto",
        tag: Optional[str] = None,
        type: Optional[str] = None,
    ) -> dict[str, Any]:
        """Search memories. Without a query, returns the most recent memories.

        Keyword search requires every word of the query to appear in the title
        or content. In auto mode, semantic search adds results when keyword
        search finds fewer than 3 (requires an embedding provider).

        Args:
            query: Search text
            limit: Maximum results (default 20)
            project: Restrict to a project
            mode: auto, keyword or vector
            tag: Restrict to memories carrying this tag
            type: Restrict to a memory type
        """
        return await tools.mem_search(
            query=query, limit=limit, project=project, mode=mode, tag=tag, type=type
        )

    @mcp.tool()
    async def mem_get(ids: list[int]) -> dict[str, Any]:
        """Get full memory content by id. Use after mem_search to read details.

        Args:
            ids: Memory ids
        """
        return await tools.mem_get(ids=ids)

    @mcp.tool()
    async def mem_list(
        limit: int = 20,
        project: Optional[str] = None,
        type: Optional[str] = None,
        tag: Optional[str] = None,
    ) -> dict[str, Any]:
        """List recent memories, newest first.

        Args:
            limit: Maximum results (default 20)
            project: Restrict to a project
            type: Restrict to a memory type
            tag: Restrict to memories carrying this tag
        """
        return await tools.mem_list(limit=limit, project=project, type=type, tag=tag)

    @mcp.tool()
    async def mem_update(
        id: int,
        text: Optional[str] = None,
        title: Optional[str] = None,
        type: Optional[str] = None,
        project: Optional[str] = None,
        tags: Optional[list[str]] = None,
    ) -> dict[str, Any]:
        """Update an existing memory. Only the given fields change.

        Args:
            id: Memory id
            text: New content
            title: New title
            type: New type
            project: New project
            tags: New tag set (replaces existing tags; [] clears them)
        """
        return await tools.mem_update(
            id=id, text=text, title=title, type=type, project=project, tags=tags
        )

    @mcp.tool()
    async def mem_delete(ids: list[int]) -> dict[str, Any]:
        """Delete memories by id, including their tags and embeddings.

        Args:
            ids: Memory ids
        """
        return await tools.mem_delete(ids=ids)

    @mcp.tool()
    async def mem_tags(project: Optional[str] = None) -> dict[str, Any]:
        """List all tags with usage counts, most used first.

        Args:
            project: Only count memories in this project
        """
        return await tools.mem_tags(project=project)

    logger.debug(f"Registered memory tools on MCP server {name!r}")
    return mcp
