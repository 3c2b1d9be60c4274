"""Memory tools that forward to a remote simple-memory HTTP API.

RemoteTools mirrors the MemoryTools method signatures so the MCP server can
run in "proxy" mode: every call becomes one HTTP request against the API
served by ``simple-memory http``, authenticated with the x-api-key header.
Search policy runs server-side, so results match a local deployment.
"""

import logging
from typing import Any, Optional

import httpx

from simple_memory.constants import API_KEY_HEADER
from simple_memory.errors import TransportError, UpstreamUnavailable
from simple_memory.tools.memory_tools import IdsInput

# MCP servers must never write to stdout (corrupts JSON-RPC)
logger = logging.getLogger(__name__)


def _drop_none(values: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


def _ids_param(ids: IdsInput) -> Optional[str]:
    if ids is None:
        return None
    if isinstance(ids, (int, str)):
        return str(ids)
    return ",".join(str(i) for i in ids)


class RemoteTools:
    """HTTP client implementation of the memory tools.

    Args:
        base_url: API base URL, e.g. https://memory.example.com
        api_key: Static key sent in the x-api-key header
        timeout: Request timeout in seconds
        transport: Optional httpx transport (tests use httpx.MockTransport)

    Example:
        >>> tools = RemoteTools("http://127.0.0.1:3100", api_key="secret")
        >>> result = await tools.mem_search(query="deploy")
        >>> await tools.close()
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {API_KEY_HEADER: api_key} if api_key else {}
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RemoteTools":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    @staticmethod
    def _failure(error: Exception) -> dict[str, Any]:
        return {"success": False, "error": str(error), "error_type": type(error).__name__}

    async def _call(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        body: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Send one request and return the server's envelope.

        Transport failures become failure envelopes: UpstreamUnavailable when
        the API cannot be reached, TransportError for anything else.
        """
        try:
            response = await self._client.request(
                method,
                path,
                params=_drop_none(params) if params else None,
                json=_drop_none(body) if body is not None else None,
            )
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            logger.warning(f"Remote memory API unreachable at {self.base_url}: {e}")
            return self._failure(UpstreamUnavailable(f"Remote memory API unreachable: {e}"))
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} failed: {e}")
            return self._failure(TransportError(f"Remote memory API request failed: {e}"))

        try:
            envelope = response.json()
        except ValueError:
            envelope = None

        if not isinstance(envelope, dict) or "success" not in envelope:
            return self._failure(
                TransportError(f"Unexpected response from {path}: HTTP {response.status_code}")
            )
        return envelope

    async def mem_save(
        self,
        text: Optional[str] = None,
        title: Optional[str] = None,
        project: Optional[str] = None,
        type: Optional[str] = None,
        tags: Optional[list[str]] = None,
        content: Optional[str] = None,
    ) -> dict[str, Any]:
        body = {
            "text": text if text is not None else content,
            "title": title,
            "project": project,
            "type": type,
            "tags": tags,
        }
        return await self._call("POST", "/memory/save", body=body)

    async def mem_search(
        self,
        query: Optional[str] = None,
        limit: Optional[int] = None,
        project: Optional[str] = None,
        mode: Optional[str] = None,
        tag: Optional[str] = None,
        type: Optional[str] = None,
    ) -> dict[str, Any]:
        params = {
            "q": query,
            "limit": limit,
            "project": project,
            "mode": mode,
            "tag": tag,
            "type": type,
        }
        return await self._call("GET", "/memory/search", params=params)

    async def mem_get(self, ids: IdsInput = None) -> dict[str, Any]:
        return await self._call("GET", "/memory/get", params={"ids": _ids_param(ids)})

    async def mem_list(
        self,
        limit: Optional[int] = None,
        project: Optional[str] = None,
        type: Optional[str] = None,
        tag: Optional[str] = None,
    ) -> dict[str, Any]:
        params = {"limit": limit, "project": project, "type": type, "tag": tag}
        return await self._call("GET", "/memory/list", params=params)

    async def mem_update(
        self,
        id: Optional[int] = None,
        text: Optional[str] = None,
        title: Optional[str] = None,
        type: Optional[str] = None,
        project: Optional[str] = None,
        tags: Optional[list[str]] = None,
        content: Optional[str] = None,
    ) -> dict[str, Any]:
        body = {
            "id": id,
            "text": text if text is not None else content,
            "title": title,
            "type": type,
            "project": project,
            "tags": tags,
        }
        return await self._call("PUT", "/memory/update", body=body)

    async def mem_delete(self, ids: IdsInput = None) -> dict[str, Any]:
        if ids is not None and not isinstance(ids, (int, str)):
            ids = list(ids)
        return await self._call("DELETE", "/memory/delete", body={"ids": ids})

    async def mem_tags(self, project: Optional[str] = None) -> dict[str, Any]:
        return await self._call("GET", "/memory/tags", params={"project": project})

    async def stats(self) -> dict[str, Any]:
        return await self._call("GET", "/memory/stats")
