"""
domain.entities - Persistence-aware types (have IDs, timestamps).

Plain dataclasses with no SQL concerns. Timestamps are epoch milliseconds;
ids are minted by the application layer, never by the database.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLE_SYSTEM = "system"
ROLE_TOOL = "tool"


@dataclass(frozen=True)
class ToolCall:
    """A model-requested tool invocation.

    arguments is the JSON-encoded argument object exactly as issued.
    """
    id: str
    name: str
    arguments: str = "{}"

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name, "arguments": self.arguments}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolCall:
        return cls(
            id=data["id"],
            name=data["name"],
            arguments=data.get("arguments") or "{}",
        )


@dataclass
class Thread:
    """A persisted conversation lineage."""
    id: str
    title: Optional[str] = None
    created_at: int = 0
    updated_at: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class Message:
    """A single turn in a thread."""
    id: str
    thread_id: str
    role: str
    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: Optional[str] = None
    created_at: int = 0
