"""
domain.models - Value objects exchanged between layers (no persistence).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from domain.entities import ToolCall


class ConnectionState(str, Enum):
    """Lifecycle of a tool provider connection."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    FAILED = "failed"


class TurnState(str, Enum):
    """Where the orchestrator is within a single chat turn."""
    IDLE = "idle"
    AWAITING_FIRST_COMPLETION = "awaiting_first_completion"
    TOOL_ROUND_IN_PROGRESS = "tool_round_in_progress"
    DONE = "done"


@dataclass(frozen=True)
class ToolDescriptor:
    """A callable tool as advertised to the model."""
    name: str
    description: str = ""
    parameter_schema: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}},
    )

    def to_openai_tool(self) -> dict[str, Any]:
        """Render in the OpenAI function-calling format accepted by bind_tools()."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameter_schema,
            },
        }


@dataclass(frozen=True)
class Completion:
    """One complete model response: plain text and/or tool calls."""
    text: str = ""
    tool_calls: tuple[ToolCall, ...] = ()

    @property
    def wants_tools(self) -> bool:
        return len(self.tool_calls) > 0


@dataclass(frozen=True)
class ChatResult:
    """What a chat turn returns to its caller."""
    response: str
    thread_id: str
