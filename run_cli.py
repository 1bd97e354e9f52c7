"""
Run the UX Architect agent CLI.

Usage:
    python run_cli.py [COMMAND] [OPTIONS]

Commands:
    threads    List threads, most recently active first
    new        Create a new thread and make it the current one
    show       Print a thread's messages
    rename     Change a thread's title
    delete     Delete a thread and all its messages
    ask        One-shot message on the current (or given) thread
    chat       Interactive chat session

Examples:
    python run_cli.py new --title "Checkout redesign"
    python run_cli.py ask "Design a login form"
    python run_cli.py chat

Environment variables (all optional):
    LLM_PROVIDER        "openai", "groq", or "ollama" (default: openai)
    LLM_MODEL_OPENAI    Model name when LLM_PROVIDER=openai (default: gpt-4-turbo-preview)
    LLM_MODEL_GROQ      Model name when LLM_PROVIDER=groq (default: llama-3.3-70b-versatile)
    LLM_MODEL_OLLAMA    Model name when LLM_PROVIDER=ollama (default: llama3.2)
    LLM_MAX_TOKENS      Cap on response tokens (default: provider default)
    OPENAI_API_KEY      Required when LLM_PROVIDER=openai
    GROQ_API_KEY        Required when LLM_PROVIDER=groq
    DB_PATH             SQLite database file path (default: agent.db)
    MCP_SERVER_URL      Remote tool server (default: Stitch); empty disables it
    MCP_API_KEY         API key sent to the tool server (STITCH_API_KEY also accepted)
    LOG_LEVEL           Logging level (default: INFO)
"""

import sys
from pathlib import Path

# Ensure src/ is importable
sys.path.insert(0, str(Path(__file__).parent / "src"))

from adapters.cli.main import app

if __name__ == "__main__":
    app()
