"""
agent.tools.catalog - The set of tools currently callable by the model.

Aggregates tool providers, connects them lazily, and resolves a tool name
to the provider that owns it. Only READY providers contribute tools.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from domain.exceptions import ToolConnectionError, ToolNotFoundError
from domain.models import ConnectionState, ToolDescriptor
from domain.ports import ToolProvider

logger = logging.getLogger(__name__)


class ToolCatalog:
    """Manages provider registration, connection, discovery and invocation."""

    def __init__(self, providers: Iterable[ToolProvider] = ()):
        self._providers: list[ToolProvider] = []
        for provider in providers:
            self.register(provider)

    def register(self, provider: ToolProvider) -> None:
        """Register a provider. Providers registered first win name clashes."""
        self._providers.append(provider)
        logger.debug("Registered tool provider: %s", provider.name)

    @property
    def providers(self) -> list[ToolProvider]:
        return list(self._providers)

    async def ensure_connected(self) -> None:
        """Connect every provider that is not READY yet.

        A connection failure is logged and leaves that provider without
        tools for this turn; it is retried on the next call.
        """
        for provider in self._providers:
            if provider.state is ConnectionState.READY:
                continue
            try:
                await provider.connect()
            except ToolConnectionError as e:
                logger.warning("%s; its tools are unavailable for now", e)

    def available_tools(self) -> list[ToolDescriptor]:
        """Return the tools of all READY providers, first registration wins."""
        seen: dict[str, str] = {}
        tools: list[ToolDescriptor] = []
        for provider in self._ready_providers():
            for tool in provider.list_tools():
                if tool.name in seen:
                    logger.warning(
                        "Tool '%s' from provider '%s' shadowed by provider '%s'",
                        tool.name, provider.name, seen[tool.name],
                    )
                    continue
                seen[tool.name] = provider.name
                tools.append(tool)
        return tools

    def names(self) -> list[str]:
        """Return all currently available tool names."""
        return [t.name for t in self.available_tools()]

    async def invoke(self, name: str, arguments: dict[str, Any]) -> Any:
        """Invoke a tool by name and return the provider's result verbatim.

        Raises:
            ToolNotFoundError:  If no READY provider exposes the name.
            ToolExecutionError: If the provider call fails.
        """
        provider = self._resolve(name)
        logger.info("Invoking tool '%s' on provider '%s'", name, provider.name)
        return await provider.call_tool(name, arguments)

    def _ready_providers(self) -> list[ToolProvider]:
        return [p for p in self._providers if p.state is ConnectionState.READY]

    def _resolve(self, name: str) -> ToolProvider:
        for provider in self._ready_providers():
            if any(t.name == name for t in provider.list_tools()):
                return provider
        raise ToolNotFoundError(name)
