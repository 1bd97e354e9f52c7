"""
agent.tools.providers - Tool providers with an explicit connection lifecycle.

A provider moves DISCONNECTED → CONNECTING → READY | FAILED. Only a READY
provider advertises tools; a FAILED one may be retried by calling
connect() again. Retry/backoff policy belongs in the caller (ToolCatalog).
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, Sequence

from pydantic import ValidationError

from agent.tools.base import BaseTool
from domain.exceptions import ToolConnectionError, ToolExecutionError, ToolNotFoundError
from domain.models import ConnectionState, ToolDescriptor
from domain.ports import ToolServerClient

logger = logging.getLogger(__name__)


class BaseToolProvider(ABC):
    """Connection state machine shared by all providers.

    Subclasses implement _open() (returns the advertised tools) and _call().
    """

    def __init__(self, name: str):
        self.name = name
        self._state = ConnectionState.DISCONNECTED
        self._tools: list[ToolDescriptor] = []
        self.last_error: str | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    async def connect(self) -> None:
        """Connect once; a READY provider is left as is.

        Raises:
            ToolConnectionError: If the connection attempt fails. The
                provider is left FAILED and can be retried.
        """
        if self._state is ConnectionState.READY:
            return

        self._state = ConnectionState.CONNECTING
        try:
            tools = list(await self._open())
        except asyncio.CancelledError:
            self._state = ConnectionState.DISCONNECTED
            raise
        except Exception as e:
            self._state = ConnectionState.FAILED
            self._tools = []
            self.last_error = str(e)
            raise ToolConnectionError(
                f"Failed to connect tool provider '{self.name}': {e}"
            ) from e

        self._tools = tools
        self._state = ConnectionState.READY
        self.last_error = None
        logger.info(
            "Tool provider '%s' ready with %d tool(s)", self.name, len(tools),
        )

    def list_tools(self) -> list[ToolDescriptor]:
        if self._state is not ConnectionState.READY:
            return []
        return list(self._tools)

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        """Dispatch a call; any provider failure surfaces as ToolExecutionError."""
        if self._state is not ConnectionState.READY:
            raise ToolNotFoundError(name)
        try:
            return await self._call(name, arguments)
        except (ToolExecutionError, ToolNotFoundError):
            raise
        except Exception as e:
            raise ToolExecutionError(f"Tool '{name}' failed: {e}") from e

    @abstractmethod
    async def _open(self) -> Sequence[ToolDescriptor]: ...

    @abstractmethod
    async def _call(self, name: str, arguments: dict[str, Any]) -> Any: ...


class LocalToolProvider(BaseToolProvider):
    """Expose in-process BaseTool instances.

    Arguments are validated against each tool's Pydantic schema before
    execute() is called. The tool's text output is the call result.
    """

    def __init__(self, tools: Iterable[BaseTool] = (), name: str = "local"):
        super().__init__(name)
        self._registry: dict[str, BaseTool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: BaseTool) -> None:
        """Register a tool by its name (visible after the next connect)."""
        self._registry[tool.name] = tool
        if self._state is ConnectionState.READY:
            self._tools = self._describe()
        logger.debug("Registered tool: %s", tool.name)

    async def _open(self) -> Sequence[ToolDescriptor]:
        return self._describe()

    def _describe(self) -> list[ToolDescriptor]:
        return [
            ToolDescriptor(
                name=tool.name,
                description=tool.description,
                parameter_schema=tool.get_schema().model_json_schema(),
            )
            for tool in self._registry.values()
        ]

    async def _call(self, name: str, arguments: dict[str, Any]) -> Any:
        tool = self._registry.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        try:
            validated = tool.get_schema().model_validate(arguments)
        except ValidationError as e:
            raise ToolExecutionError(f"Invalid arguments for '{name}': {e}") from e
        result = await tool.execute(**validated.model_dump())
        return result.output


class RemoteToolProvider(BaseToolProvider):
    """Expose the tools of a remote tool server through a ToolServerClient."""

    def __init__(self, name: str, client: ToolServerClient):
        super().__init__(name)
        self._client = client

    async def _open(self) -> Sequence[ToolDescriptor]:
        await self._client.initialize()
        return await self._client.list_tools()

    async def _call(self, name: str, arguments: dict[str, Any]) -> Any:
        return await self._client.call_tool(name, arguments)
