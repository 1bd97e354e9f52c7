"""
infrastructure.mcp.client - HTTP client for a remote Model Context Protocol server.

Implements ToolServerClient over the MCP streamable-HTTP transport:
JSON-RPC 2.0 requests POSTed to a single endpoint, answered either with
application/json or with a text/event-stream carrying the response.
Uses requests via run_in_executor for async compat.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from typing import Any, Optional

import requests

from domain.exceptions import ToolConnectionError, ToolExecutionError
from domain.models import ToolDescriptor

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2025-03-26"
CLIENT_INFO = {"name": "ux-architect-agent", "version": "0.1.0"}


class MCPClient:
    """Minimal MCP client: initialize, tools/list and tools/call."""

    def __init__(
        self,
        server_url: str,
        api_key: str = "",
        api_key_header: str = "X-Goog-Api-Key",
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self._url = server_url
        self._api_key = api_key
        self._api_key_header = api_key_header
        self._timeout = timeout
        self._http = session or requests.Session()
        self._ids = itertools.count(1)
        self._session_id: Optional[str] = None
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Run the MCP initialize handshake.

        Raises:
            ToolConnectionError: If the server is unreachable, rejects the
                credentials, or answers with a JSON-RPC error.
        """
        try:
            result = await self._run(
                self._request,
                "initialize",
                {
                    "protocolVersion": PROTOCOL_VERSION,
                    "capabilities": {},
                    "clientInfo": CLIENT_INFO,
                },
            )
            await self._run(self._notify, "notifications/initialized")
        except ToolExecutionError as e:
            raise ToolConnectionError(str(e)) from e

        self._initialized = True
        logger.info(
            "Connected to MCP server %s (%s)",
            self._url, result.get("serverInfo", {}).get("name", "unknown"),
        )

    async def list_tools(self) -> list[ToolDescriptor]:
        """Return every tool the server advertises, following pagination."""
        tools: list[ToolDescriptor] = []
        cursor: Optional[str] = None
        while True:
            params = {"cursor": cursor} if cursor else {}
            try:
                result = await self._run(self._request, "tools/list", params)
            except ToolExecutionError as e:
                raise ToolConnectionError(str(e)) from e
            for tool in result.get("tools", []):
                tools.append(ToolDescriptor(
                    name=tool["name"],
                    description=tool.get("description") or "",
                    parameter_schema=tool.get("inputSchema")
                    or {"type": "object", "properties": {}},
                ))
            cursor = result.get("nextCursor")
            if not cursor:
                return tools

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        """Call a tool and return the raw MCP result object.

        Raises:
            ToolExecutionError: On transport errors, JSON-RPC errors, or a
                result flagged with isError.
        """
        result = await self._run(
            self._request, "tools/call", {"name": name, "arguments": arguments},
        )
        if result.get("isError"):
            raise ToolExecutionError(_error_text(result) or f"Tool '{name}' reported an error")
        return result

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _run(self, func, *args):
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, func, *args)

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
            "MCP-Protocol-Version": PROTOCOL_VERSION,
        }
        if self._api_key:
            headers[self._api_key_header] = self._api_key
        if self._session_id:
            headers["Mcp-Session-Id"] = self._session_id
        return headers

    def _post(self, payload: dict[str, Any]) -> requests.Response:
        """Synchronous POST (runs in thread pool)."""
        try:
            response = self._http.post(
                self._url,
                data=json.dumps(payload),
                headers=self._headers(),
                timeout=self._timeout,
            )
        except requests.exceptions.ConnectionError as e:
            raise ToolConnectionError(f"MCP server unreachable at {self._url}: {e}") from e
        except requests.exceptions.Timeout as e:
            raise ToolExecutionError(
                f"MCP server timed out after {self._timeout}s"
            ) from e

        if response.status_code in (401, 403):
            raise ToolConnectionError(
                f"Authentication required by MCP server {self._url} "
                f"(HTTP {response.status_code})"
            )
        if not response.ok:
            raise ToolExecutionError(
                f"MCP server returned HTTP {response.status_code}: {response.text[:200]}"
            )

        session_id = response.headers.get("Mcp-Session-Id")
        if session_id:
            self._session_id = session_id
        return response

    def _notify(self, method: str) -> None:
        self._post({"jsonrpc": "2.0", "method": method})

    def _request(self, method: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        request_id = next(self._ids)
        payload: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
        if params:
            payload["params"] = params

        logger.debug("MCP request %s (id=%d)", method, request_id)
        response = self._post(payload)
        message = _parse_response(response, request_id)

        if "error" in message:
            error = message["error"] or {}
            raise ToolExecutionError(
                f"MCP {method} failed ({error.get('code')}): {error.get('message')}"
            )
        return message.get("result") or {}


def _parse_response(response: requests.Response, request_id: int) -> dict[str, Any]:
    """Extract the JSON-RPC message answering request_id."""
    content_type = response.headers.get("Content-Type", "")
    if content_type.startswith("text/event-stream"):
        for line in response.text.splitlines():
            if not line.startswith("data:"):
                continue
            try:
                message = json.loads(line[len("data:"):].strip())
            except json.JSONDecodeError:
                continue
            if isinstance(message, dict) and message.get("id") == request_id:
                return message
        raise ToolExecutionError(f"No response for request {request_id} in event stream")

    try:
        message = response.json()
    except ValueError as e:
        raise ToolExecutionError(f"MCP server sent invalid JSON: {e}") from e
    if isinstance(message, list):
        message = next((m for m in message if m.get("id") == request_id), {})
    return message


def _error_text(result: dict[str, Any]) -> str:
    return " ".join(
        block.get("text", "")
        for block in result.get("content", [])
        if block.get("type") == "text"
    ).strip()
