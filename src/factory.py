"""
factory - Composition root for the UX Architect agent.

ALL dependency wiring happens here. No other module constructs its own
dependencies. Adapters (CLI, tests) call this factory to get fully
configured orchestrators.

Usage:
    from factory import ServiceFactory
    from infrastructure.config import Settings

    config = Settings.from_env()
    factory = ServiceFactory(config)
    await factory.initialize()  # one-time startup

    orchestrator = factory.create_orchestrator()
    result = await orchestrator.chat("Design a login form")
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from infrastructure.config import Settings
from infrastructure.llm.chat_completion import LangChainCompletionService
from infrastructure.llm.llm_builder import build_llm
from infrastructure.mcp.client import MCPClient
from infrastructure.persistence.connection import AsyncSQLiteConnection
from infrastructure.persistence.message_repo import SQLiteMessageStore
from infrastructure.persistence.migrations import run_migrations
from infrastructure.persistence.thread_repo import SQLiteThreadRepository
from application.services.thread_service import ThreadService
from application.session import ConversationSession
from agent.orchestrator import ConversationOrchestrator
from agent.prompt import build_system_prompt
from agent.tools.catalog import ToolCatalog
from agent.tools.contrast_ratio import ContrastRatioTool
from agent.tools.providers import LocalToolProvider, RemoteToolProvider
from domain.ports import CompletionPort, ToolProvider

logger = logging.getLogger(__name__)


class ServiceFactory:
    """Composition root: wires all dependencies together.

    Call initialize() once at startup, then create orchestrators as needed.
    Each orchestrator owns its own session and tool connections.
    """

    def __init__(self, config: Settings):
        self._config = config
        self._connection = AsyncSQLiteConnection(config.db_path)
        self._initialized = False

    @property
    def config(self) -> Settings:
        return self._config

    async def initialize(self) -> None:
        """One-time startup: create the database schema."""
        logger.info("Initializing ServiceFactory (db=%s)...", self._config.db_path)
        await run_migrations(self._connection)
        self._initialized = True
        logger.info("ServiceFactory ready")

    # ------------------------------------------------------------------
    # Building blocks
    # ------------------------------------------------------------------

    def create_thread_repository(self) -> SQLiteThreadRepository:
        return SQLiteThreadRepository(self._connection)

    def create_message_store(self) -> SQLiteMessageStore:
        return SQLiteMessageStore(self._connection)

    def create_session(self) -> ConversationSession:
        return ConversationSession(build_system_prompt(self._config.system_prompt))

    def create_thread_service(
        self, session: Optional[ConversationSession] = None,
    ) -> ThreadService:
        """Create a ThreadService bound to a (new, by default) session."""
        self._ensure_initialized()
        return ThreadService(
            thread_repo=self.create_thread_repository(),
            message_store=self.create_message_store(),
            session=session or self.create_session(),
        )

    def create_tool_catalog(
        self, extra_providers: Iterable[ToolProvider] = (),
    ) -> ToolCatalog:
        """Local tools first, then the configured MCP server, then extras."""
        catalog = ToolCatalog()
        catalog.register(LocalToolProvider([ContrastRatioTool()]))
        if self._config.mcp_enabled:
            client = MCPClient(
                server_url=self._config.mcp_server_url,
                api_key=self._config.mcp_api_key,
                api_key_header=self._config.mcp_api_key_header,
                timeout=self._config.mcp_timeout,
            )
            catalog.register(RemoteToolProvider(self._config.mcp_server_name, client))
        for provider in extra_providers:
            catalog.register(provider)
        return catalog

    def create_completion_service(self) -> LangChainCompletionService:
        """Build the chat model for the configured provider."""
        llm = build_llm(
            provider=self._config.llm_provider,
            model=self._config.active_llm_model,
            temperature=self._config.llm_temperature,
            ollama_base_url=self._config.ollama_base_url,
            openai_api_key=self._config.openai_api_key,
            groq_api_key=self._config.groq_api_key,
            max_tokens=self._config.llm_max_tokens,
        )
        return LangChainCompletionService(llm)

    # ------------------------------------------------------------------
    # Orchestrator creation
    # ------------------------------------------------------------------

    def create_orchestrator(
        self,
        completion: Optional[CompletionPort] = None,
        tool_catalog: Optional[ToolCatalog] = None,
    ) -> ConversationOrchestrator:
        """Create a fully configured ConversationOrchestrator.

        Args:
            completion:   Completion service override (tests, custom models).
            tool_catalog: Tool catalog override; defaults to create_tool_catalog().

        Returns:
            An orchestrator with a fresh session and no active thread.
        """
        self._ensure_initialized()
        return ConversationOrchestrator(
            completion=completion or self.create_completion_service(),
            tools=tool_catalog if tool_catalog is not None else self.create_tool_catalog(),
            threads=self.create_thread_service(),
            message_store=self.create_message_store(),
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError(
                "ServiceFactory not initialized. Call await factory.initialize() first."
            )
