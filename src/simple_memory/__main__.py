"""Entry point for simple-memory.

This module provides the command line interface with:
- Component initialization in dependency order
- The MCP stdio server (local store or proxy to a remote API)
- The HTTP API for remote deployments
- Maintenance commands (init, stats, import, reembed)
- Logging to stderr (CRITICAL for MCP stdio)

Usage:
    simple-memory [--log-level LEVEL] [--data-dir DIR] [command]

    Commands:
        serve               MCP stdio server on the local store (default)
        http                HTTP API (requires MCP_MEMORY_API_KEY)
        proxy               MCP stdio server forwarding to MCP_MEMORY_API_URL
        init [--dir DIR]    Register the server in DIR/.mcp.json
        stats [--json]      Print store statistics
        import PATH         Import a markdown file, one memory per section
        reembed             Regenerate every embedding with the current provider

CRITICAL: MCP servers using stdio transport must NEVER write to stdout
as it corrupts JSON-RPC messages. All logging goes to stderr.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

# Load .env file - must be done before any config access
load_dotenv()

logger = logging.getLogger(__name__)


def setup_logging(log_level: str) -> None:
    """Configure logging to stderr (never stdout for MCP servers).

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,  # Critical: never use stdout in MCP servers
    )

    logger.debug(f"Logging initialized at {log_level.upper()} level")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subparser per command."""
    parser = argparse.ArgumentParser(
        prog="simple-memory",
        description="Persistent memory for AI assistants, served over MCP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: MCP_MEMORY_LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory holding memory.db (default: MCP_MEMORY_DIR or ~/.mcp-simple-memory)",
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("serve", help="Run the MCP stdio server (default)")

    http_parser = subparsers.add_parser("http", help="Run the HTTP API")
    http_parser.add_argument("--host", type=str, default=None, help="Bind address")
    http_parser.add_argument("--port", type=int, default=None, help="Bind port")

    proxy_parser = subparsers.add_parser("proxy", help="MCP server forwarding to a remote API")
    proxy_parser.add_argument("--url", type=str, default=None, help="Remote API base URL")

    init_parser = subparsers.add_parser("init", help="Add the server to .mcp.json")
    init_parser.add_argument(
        "--dir", type=Path, default=None, help="Directory containing .mcp.json (default: cwd)"
    )

    stats_parser = subparsers.add_parser("stats", help="Print store statistics")
    stats_parser.add_argument("--json", action="store_true", help="Print raw JSON")

    import_parser = subparsers.add_parser("import", help="Import a markdown file")
    import_parser.add_argument("path", type=Path, help="Markdown file")
    import_parser.add_argument("--project", type=str, default=None, help="Target project")
    import_parser.add_argument("--type", type=str, default=None, help="Memory type")
    import_parser.add_argument(
        "--tags", type=str, default=None, help="Comma-separated tags for every memory"
    )

    subparsers.add_parser("reembed", help="Regenerate all embeddings")
    return parser


def load_settings(args: argparse.Namespace) -> Any:
    """Load settings from the environment, applying CLI overrides."""
    from simple_memory.config import MemorySettings

    overrides: dict[str, Any] = {}
    if args.data_dir is not None:
        overrides["data_dir"] = args.data_dir
    if args.log_level is not None:
        overrides["log_level"] = args.log_level
    return MemorySettings(**overrides)


def initialize_components(settings: Any) -> dict[str, Any]:
    """Initialize all components in dependency order.

    Initialization order follows dependency graph:
    1. SQLiteStore (runs schema migrations)
    2. Embedding provider and adapter (optional)
    3. EmbeddingWorker
    4. HybridStore
    5. MemoryTools

    Args:
        settings: Loaded MemorySettings

    Returns:
        Dictionary containing all initialized components

    Raises:
        StorageError: If the database cannot be opened or migrated
    """
    from simple_memory.embedding import EmbeddingAdapter, EmbeddingWorker, create_embedding_provider
    from simple_memory.storage import HybridStore, SQLiteStore
    from simple_memory.tools import MemoryTools

    components: dict[str, Any] = {}

    db_path = settings.get_sqlite_path()
    logger.info(f"Opening memory store at {db_path}")
    store = SQLiteStore(db_path=db_path)
    components["sqlite_store"] = store

    provider = create_embedding_provider(settings)
    adapter = EmbeddingAdapter(provider)
    components["adapter"] = adapter

    worker = EmbeddingWorker(store, adapter)
    components["worker"] = worker

    hybrid = HybridStore(
        sqlite_store=store,
        adapter=adapter,
        worker=worker,
        default_limit=settings.default_limit,
    )
    components["hybrid_store"] = hybrid
    components["memory_tools"] = MemoryTools(hybrid)

    logger.info(
        "Components initialized "
        f"(semantic search: {adapter.provider_name or 'disabled'})"
    )
    return components


def shutdown_components(components: dict[str, Any]) -> None:
    """Drain pending embedding jobs and release resources."""
    worker = components.get("worker")
    if worker is not None:
        worker.shutdown()
    adapter = components.get("adapter")
    if adapter is not None:
        adapter.close()
    store = components.get("sqlite_store")
    if store is not None:
        store.close()


def handle_shutdown(signum: int, _frame: Any) -> None:
    """Handle SIGTERM by unwinding through the normal shutdown path."""
    logger.info(f"Received signal {signum}, shutting down gracefully...")
    sys.exit(0)


# =============================================================================
# Commands
# =============================================================================


def cmd_serve(settings: Any) -> int:
    from simple_memory.mcp_server import build_server

    components = initialize_components(settings)
    try:
        mcp = build_server(components["memory_tools"])
        signal.signal(signal.SIGTERM, handle_shutdown)
        logger.info("MCP server ready, starting stdio transport...")
        mcp.run(transport="stdio")
    finally:
        shutdown_components(components)
    return 0


def cmd_proxy(settings: Any, url: Optional[str]) -> int:
    from simple_memory.mcp_server import build_server, closing_lifespan
    from simple_memory.tools import RemoteTools

    api_url = url or settings.api_url
    if not settings.api_key:
        logger.warning("MCP_MEMORY_API_KEY is not set; the remote API will reject requests")

    tools = RemoteTools(api_url, api_key=settings.api_key, timeout=settings.embedding_timeout)
    mcp = build_server(tools, lifespan=closing_lifespan(tools))
    signal.signal(signal.SIGTERM, handle_shutdown)
    logger.info(f"MCP proxy ready, forwarding to {api_url}")
    mcp.run(transport="stdio")
    return 0


def cmd_http(settings: Any, host: Optional[str], port: Optional[int]) -> int:
    from simple_memory.http_api import create_app

    if not settings.api_key:
        logger.error("MCP_MEMORY_API_KEY must be set to serve the HTTP API")
        return 1

    components = initialize_components(settings)
    try:
        app = create_app(components["memory_tools"], settings.api_key)
        bind_host = host or settings.http_host
        bind_port = port or settings.http_port
        logger.info(f"HTTP API listening on {bind_host}:{bind_port}")
        app.run(host=bind_host, port=bind_port, threaded=True)
    finally:
        shutdown_components(components)
    return 0


def cmd_init(directory: Optional[Path]) -> int:
    """Add the server entry to .mcp.json, creating the file if needed."""
    from simple_memory.constants import SERVER_NAME

    config_path = (directory or Path.cwd()) / ".mcp.json"
    config: dict[str, Any] = {}
    if config_path.exists():
        try:
            config = json.loads(config_path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as e:
            print(f"Error: {config_path} is not valid JSON ({e})", file=sys.stderr)
            return 1
        if not isinstance(config, dict):
            print(f"Error: {config_path} must contain a JSON object", file=sys.stderr)
            return 1

    servers = config.setdefault("mcpServers", {})
    if SERVER_NAME in servers:
        print(f"{SERVER_NAME} is already configured in {config_path}")
        return 0

    servers[SERVER_NAME] = {"command": "simple-memory", "args": ["serve"]}
    config_path.write_text(json.dumps(config, indent=2) + "\n", encoding="utf-8")
    print(f"Added {SERVER_NAME} to {config_path}")
    return 0


def cmd_stats(settings: Any, as_json: bool) -> int:
    components = initialize_components(settings)
    try:
        result = asyncio.run(components["memory_tools"].stats())
    finally:
        shutdown_components(components)

    if not result["success"]:
        print(f"Error: {result['error']}", file=sys.stderr)
        return 1

    data = result["data"]
    if as_json:
        print(json.dumps(data, indent=2))
        return 0

    total = data["total_memories"]
    coverage = f"{data['total_embeddings']}/{total}"
    print(f"Database:    {data['db_path']} ({data['db_size_bytes'] / 1024:.1f} KiB)")
    print(f"Schema:      v{data['schema_version']}")
    print(f"Memories:    {total}")
    print(f"Tags:        {data['total_tags']}")
    print(f"Embeddings:  {coverage} (semantic search {'on' if data['vector_search'] else 'off'})")
    for title, counts in (("Projects", data["by_project"]), ("Types", data["by_type"])):
        if counts:
            print(f"{title}:")
            for name, count in counts.items():
                print(f"  {name}: {count}")
    return 0


async def _import_chunks(
    hybrid: Any,
    chunks: list,
    project: Optional[str],
    type: Optional[str],
    tags: Optional[list[str]],
) -> int:
    for chunk in chunks:
        await hybrid.save(
            chunk.text, title=chunk.header_path, project=project, type=type, tags=tags
        )
    return len(chunks)


def cmd_import(
    settings: Any, path: Path, project: Optional[str], type: Optional[str], tags: Optional[str]
) -> int:
    from simple_memory.chunking import MarkdownChunker

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        print(f"Error: cannot read {path}: {e}", file=sys.stderr)
        return 1

    try:
        chunks = MarkdownChunker().chunk(content, document_title=path.stem)
    except ValueError as e:
        print(f"Error: {path}: {e}", file=sys.stderr)
        return 1

    tag_list = tags.split(",") if tags else None
    components = initialize_components(settings)
    try:
        saved = asyncio.run(
            _import_chunks(components["hybrid_store"], chunks, project, type, tag_list)
        )
        components["worker"].drain(timeout=None)
    finally:
        shutdown_components(components)

    print(f"Imported {saved} memories from {path}")
    return 0


def cmd_reembed(settings: Any) -> int:
    components = initialize_components(settings)
    try:
        if not components["adapter"].available:
            print(
                "Error: no embedding provider configured "
                "(set GEMINI_API_KEY or MCP_MEMORY_EMBEDDING_BACKEND)",
                file=sys.stderr,
            )
            return 1
        worker = components["worker"]
        scheduled = components["hybrid_store"].reembed_all()
        worker.drain(timeout=None)
        print(f"Re-embedded {worker.completed}/{scheduled} memories ({worker.failed} failed)")
        return 0 if worker.failed == 0 else 1
    finally:
        shutdown_components(components)


def run(argv: Optional[list[str]] = None) -> int:
    """Parse arguments and dispatch to a command.

    Returns:
        Process exit code
    """
    from simple_memory.errors import StorageError

    args = build_parser().parse_args(argv)
    command = args.command or "serve"

    if command == "init":
        return cmd_init(args.dir)

    settings = load_settings(args)
    setup_logging(settings.log_level)

    try:
        match command:
            case "serve":
                return cmd_serve(settings)
            case "proxy":
                return cmd_proxy(settings, args.url)
            case "http":
                return cmd_http(settings, args.host, args.port)
            case "stats":
                return cmd_stats(settings, args.json)
            case "import":
                return cmd_import(settings, args.path, args.project, args.type, args.tags)
            case "reembed":
                return cmd_reembed(settings)
    except StorageError as e:
        logger.error(f"Failed to open memory store: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    return 1


def main() -> None:
    """Main entry point for the simple-memory command."""
    sys.exit(run())


if __name__ == "__main__":
    main()
