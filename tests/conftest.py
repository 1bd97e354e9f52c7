"""Pytest configuration and shared fixtures."""

import asyncio
import sys
from pathlib import Path

import pytest
from pydantic import BaseModel

# Ensure source tree is importable without editable install
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from agent.tools.base import BaseTool, ToolResult  # noqa: E402
from agent.tools.providers import BaseToolProvider  # noqa: E402
from application.services.thread_service import ThreadService  # noqa: E402
from application.session import ConversationSession  # noqa: E402
from factory import ServiceFactory  # noqa: E402
from infrastructure.config import Settings  # noqa: E402


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class ScriptedCompletion:
    """CompletionPort fake returning (or raising) queued responses in order."""

    def __init__(self, *responses):
        self._responses = list(responses)
        self.calls = []

    async def complete(self, messages, tools=None):
        self.calls.append((list(messages), list(tools) if tools else None))
        if not self._responses:
            raise AssertionError("No scripted completion left")
        item = self._responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


class HangingCompletion:
    """CompletionPort fake that never returns (for cancellation tests)."""

    def __init__(self):
        self.started = asyncio.Event()

    async def complete(self, messages, tools=None):
        self.started.set()
        await asyncio.sleep(3600)


class EchoInput(BaseModel):
    text: str


class EchoTool(BaseTool):
    name = "echo"
    description = "Echo the given text back."

    def get_schema(self):
        return EchoInput

    async def execute(self, text: str, **kwargs) -> ToolResult:
        return ToolResult(output=f"echo:{text}")


class BoomInput(BaseModel):
    pass


class BoomTool(BaseTool):
    name = "boom"
    description = "Always fails."

    def get_schema(self):
        return BoomInput

    async def execute(self, **kwargs) -> ToolResult:
        raise RuntimeError("boom")


class FlakyProvider(BaseToolProvider):
    """Fails to connect `failures` times, then serves the given tools."""

    def __init__(self, name="flaky", failures=1, tools=(), result=None):
        super().__init__(name)
        self.failures = failures
        self.connect_attempts = 0
        self._descriptors = list(tools)
        self._result = result
        self.calls = []

    async def _open(self):
        self.connect_attempts += 1
        if self.connect_attempts <= self.failures:
            raise ConnectionError("server unavailable")
        return self._descriptors

    async def _call(self, name, arguments):
        self.calls.append((name, arguments))
        return self._result


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings(tmp_path):
    return Settings(
        project_root=tmp_path,
        db_path=str(tmp_path / "test.db"),
        mcp_server_url="",
        openai_api_key="test-key",
    )


@pytest.fixture
async def factory(settings):
    f = ServiceFactory(settings)
    await f.initialize()
    return f


@pytest.fixture
def clock():
    """Deterministic millisecond clock advancing by 1 ms per call."""
    state = {"now": 1_700_000_000_000}

    def _tick():
        state["now"] += 1
        return state["now"]

    _tick.state = state
    return _tick


@pytest.fixture
def thread_repo(factory):
    return factory.create_thread_repository()


@pytest.fixture
def message_store(factory):
    return factory.create_message_store()


@pytest.fixture
def session():
    return ConversationSession("You are a test persona.")


@pytest.fixture
def thread_service(thread_repo, message_store, session, clock):
    return ThreadService(thread_repo, message_store, session, clock=clock)
