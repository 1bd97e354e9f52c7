"""
domain.ports - Abstract interfaces (Protocols) for all system boundaries.

These define WHAT the system needs without specifying HOW. Infrastructure
and agent modules provide concrete implementations. Application services
depend only on these protocols, never on concrete classes.

Using typing.Protocol (structural typing) instead of ABC: any class that
implements the methods satisfies the port without explicit inheritance.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence, runtime_checkable

from domain.entities import Message, Thread
from domain.models import Completion, ConnectionState, ToolDescriptor


# ---------------------------------------------------------------------------
# AI Component Ports
# ---------------------------------------------------------------------------

@runtime_checkable
class CompletionPort(Protocol):
    """Request exactly one complete (non-streamed) model response.

    messages is the projected request payload (see agent.projection).
    """

    async def complete(
        self,
        messages: Sequence[Any],
        tools: Optional[Sequence[ToolDescriptor]] = None,
    ) -> Completion: ...


@runtime_checkable
class ToolProvider(Protocol):
    """A source of callable tools (in-process or a remote tool server)."""

    name: str

    @property
    def state(self) -> ConnectionState: ...

    async def connect(self) -> None: ...

    def list_tools(self) -> list[ToolDescriptor]: ...

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any: ...


@runtime_checkable
class ToolServerClient(Protocol):
    """Wire client for a remote tool server (e.g. an MCP endpoint)."""

    async def initialize(self) -> None: ...
    async def list_tools(self) -> list[ToolDescriptor]: ...
    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any: ...


# ---------------------------------------------------------------------------
# Repository Ports
# ---------------------------------------------------------------------------

@runtime_checkable
class ThreadRepository(Protocol):
    """CRUD for Thread metadata."""

    async def save(self, thread: Thread) -> None: ...
    async def get_by_id(self, thread_id: str) -> Thread | None: ...
    async def list_all(self) -> list[Thread]: ...
    async def update_title(self, thread_id: str, title: Optional[str]) -> bool: ...
    async def delete(self, thread_id: str) -> bool: ...


@runtime_checkable
class MessageStore(Protocol):
    """Append-only message log, ordered per thread."""

    async def append(self, message: Message) -> None: ...
    async def messages_for(self, thread_id: str) -> list[Message]: ...
