"""
infrastructure.config - Typed, injectable configuration.

A frozen dataclass that can be constructed from the environment or passed
explicitly in tests.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class Settings:
    """Centralized configuration for the UX Architect agent.

    No module-level globals; construct via from_env() or pass explicitly
    in tests.
    """
    project_root: Path

    # ── Centralized LLM Provider ────────────────────────────────
    # Allowed: "openai", "groq", "ollama"
    llm_provider: str = "openai"

    # Model names: only the one matching llm_provider is used.
    llm_model_openai: str = "gpt-4-turbo-preview"
    llm_model_groq: str = "llama-3.3-70b-versatile"
    llm_model_ollama: str = "llama3.2"
    llm_temperature: float = 0.7
    llm_max_tokens: Optional[int] = None

    # Connection details
    ollama_base_url: str = "http://localhost:11434/"
    openai_api_key: str = ""
    groq_api_key: str = ""

    # Database
    db_path: str = "agent.db"

    # Remote tool server (Model Context Protocol). Empty URL disables it.
    mcp_server_name: str = "Stitch"
    mcp_server_url: str = "https://stitch.googleapis.com/mcp"
    mcp_api_key: str = ""
    mcp_api_key_header: str = "X-Goog-Api-Key"
    mcp_timeout: float = 30.0

    # Persona override; empty means the built-in UX Architect prompt.
    system_prompt: str = ""

    log_level: str = "INFO"

    @property
    def active_llm_model(self) -> str:
        """Return the model name for the currently active LLM provider."""
        if self.llm_provider == "groq":
            return self.llm_model_groq
        elif self.llm_provider == "ollama":
            return self.llm_model_ollama
        return self.llm_model_openai

    @property
    def mcp_enabled(self) -> bool:
        return bool(self.mcp_server_url)

    @classmethod
    def from_env(cls, project_root: Optional[Path] = None) -> Settings:
        """Build Settings from environment variables (and a .env file)."""
        from dotenv import load_dotenv
        load_dotenv()

        root = project_root or Path(__file__).resolve().parent.parent.parent
        max_tokens = os.getenv("LLM_MAX_TOKENS")

        return cls(
            project_root=root,
            llm_provider=os.getenv("LLM_PROVIDER", "openai"),
            llm_model_openai=os.getenv("LLM_MODEL_OPENAI", "gpt-4-turbo-preview"),
            llm_model_groq=os.getenv("LLM_MODEL_GROQ", "llama-3.3-70b-versatile"),
            llm_model_ollama=os.getenv("LLM_MODEL_OLLAMA", "llama3.2"),
            llm_temperature=float(os.getenv("LLM_TEMPERATURE", "0.7")),
            llm_max_tokens=int(max_tokens) if max_tokens else None,
            ollama_base_url=os.getenv("OLLAMA_BASE_URL", "http://localhost:11434/"),
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            groq_api_key=os.getenv("GROQ_API_KEY", ""),
            db_path=os.getenv("DB_PATH", "agent.db"),
            mcp_server_name=os.getenv("MCP_SERVER_NAME", "Stitch"),
            mcp_server_url=os.getenv("MCP_SERVER_URL", "https://stitch.googleapis.com/mcp"),
            mcp_api_key=os.getenv("MCP_API_KEY") or os.getenv("STITCH_API_KEY", ""),
            mcp_api_key_header=os.getenv("MCP_API_KEY_HEADER", "X-Goog-Api-Key"),
            mcp_timeout=float(os.getenv("MCP_TIMEOUT", "30")),
            system_prompt=os.getenv("SYSTEM_PROMPT", ""),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
