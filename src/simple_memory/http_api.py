"""HTTP API exposing the memory tools for remote deployments.

Endpoints (all but /health require the x-api-key header):
    POST   /memory/save     JSON {text, title?, project?, type?, tags?}
    GET    /memory/search   ?q=&limit=&project=&type=&tag=&mode=
    GET    /memory/get      ?ids=1,2,3
    GET    /memory/list     ?limit=&project=&type=&tag=
    PUT    /memory/update   JSON {id, text?, title?, type?, project?, tags?}
    DELETE /memory/delete   JSON {ids: [...]}
    GET    /memory/tags     ?project=
    GET    /memory/stats
    GET    /health

Responses carry the tool envelope. Failures map to 400 (validation),
401 (bad key), 404 (not found) and 500 (anything else).
"""

import asyncio
import hmac
import logging
from typing import Any, Optional, Union

from flask import Flask, jsonify, request

from simple_memory import __version__
from simple_memory.constants import API_KEY_HEADER
from simple_memory.tools.memory_tools import MemoryTools

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = {
    "ValidationError": 400,
    "NoOpError": 400,
    "NotFoundError": 404,
}


def _status_for(envelope: dict[str, Any]) -> int:
    if envelope.get("success"):
        return 200
    return _STATUS_BY_ERROR.get(envelope.get("error_type", ""), 500)


def _tags_value(value: Union[str, list, None]) -> Optional[list[str]]:
    """Accept tags as a JSON list or a comma-separated string."""
    if value is None:
        return None
    if isinstance(value, str):
        return [t for t in value.split(",") if t.strip()]
    return list(value)


def create_app(tools: MemoryTools, api_key: str) -> Flask:
    """Create the Flask application.

    Args:
        tools: Local tool implementation
        api_key: Static key expected in the x-api-key header

    Returns:
        Configured Flask app
    """
    if not api_key:
        raise ValueError("An API key is required to serve the memory API")

    app = Flask(__name__)

    def respond(envelope: dict[str, Any]):
        return jsonify(envelope), _status_for(envelope)

    def body() -> dict[str, Any]:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}

    @app.before_request
    def require_api_key():
        if request.path == "/health":
            return None
        supplied = request.headers.get(API_KEY_HEADER, "")
        if not hmac.compare_digest(supplied.encode(), api_key.encode()):
            logger.warning(f"Rejected {request.method} {request.path}: invalid API key")
            return (
                jsonify(
                    {"success": False, "error": "Invalid API key", "error_type": "Unauthorized"}
                ),
                401,
            )
        return None

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "version": __version__})

    @app.route("/memory/save", methods=["POST"])
    def save():
        data = body()
        return respond(
            asyncio.run(
                tools.mem_save(
                    text=data.get("text", data.get("content")),
                    title=data.get("title"),
                    project=data.get("project"),
                    type=data.get("type"),
                    tags=_tags_value(data.get("tags")),
                )
            )
        )

    @app.route("/memory/search")
    def search():
        args = request.args
        return respond(
            asyncio.run(
                tools.mem_search(
                    query=args.get("q", args.get("query")),
                    limit=args.get("limit", type=int),
                    project=args.get("project"),
                    mode=args.get("mode"),
                    tag=args.get("tag"),
                    type=args.get("type"),
                )
            )
        )

    @app.route("/memory/get")
    def get():
        return respond(asyncio.run(tools.mem_get(ids=request.args.get("ids"))))

    @app.route("/memory/list")
    def list_memories():
        args = request.args
        return respond(
            asyncio.run(
                tools.mem_list(
                    limit=args.get("limit", type=int),
                    project=args.get("project"),
                    type=args.get("type"),
                    tag=args.get("tag"),
                )
            )
        )

    @app.route("/memory/update", methods=["PUT"])
    def update():
        data = body()
        return respond(
            asyncio.run(
                tools.mem_update(
                    id=data.get("id"),
                    text=data.get("text", data.get("content")),
                    title=data.get("title"),
                    type=data.get("type"),
                    project=data.get("project"),
                    tags=_tags_value(data.get("tags")),
                )
            )
        )

    @app.route("/memory/delete", methods=["DELETE"])
    def delete():
        ids = body().get("ids", request.args.get("ids"))
        return respond(asyncio.run(tools.mem_delete(ids=ids)))

    @app.route("/memory/tags")
    def tags():
        return respond(asyncio.run(tools.mem_tags(project=request.args.get("project"))))

    @app.route("/memory/stats")
    def stats():
        return respond(asyncio.run(tools.stats()))

    return app
