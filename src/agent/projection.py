"""
agent.projection - Stored history → LLM request payload.

A single pure function used for every completion request of a turn, so
the first request and the follow-up after tool calls can never project
the same history differently.
"""

from __future__ import annotations

import json
from typing import Sequence

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from domain.entities import (
    ROLE_ASSISTANT,
    ROLE_SYSTEM,
    ROLE_TOOL,
    ROLE_USER,
    Message,
    ToolCall,
)
from domain.exceptions import DataIntegrityError


def project_history(
    system_prompt: str, history: Sequence[Message],
) -> list[BaseMessage]:
    """Translate a history snapshot into LangChain messages.

    The persona prompt always comes first. Every stored message is then
    projected in stored order; nothing is reordered, filtered or merged.

    Raises:
        DataIntegrityError: If a tool message lacks a tool_call_id, refers
            to a call no earlier assistant message issued, an issued call is
            never answered before the next non-tool message, a stored tool
            call has undecodable arguments, or a role is unknown.
    """
    projected: list[BaseMessage] = [SystemMessage(content=system_prompt)]
    issued: set[str] = set()
    pending: set[str] = set()

    for msg in history:
        if msg.role != ROLE_TOOL and pending:
            raise DataIntegrityError(
                f"Message {msg.id} follows unanswered tool call(s): "
                f"{', '.join(sorted(pending))}"
            )

        if msg.role == ROLE_USER:
            projected.append(HumanMessage(content=msg.content))

        elif msg.role == ROLE_ASSISTANT:
            if msg.tool_calls:
                projected.append(AIMessage(
                    content=msg.content,
                    tool_calls=[_project_call(msg, c) for c in msg.tool_calls],
                ))
                issued.update(c.id for c in msg.tool_calls)
                pending.update(c.id for c in msg.tool_calls)
            else:
                projected.append(AIMessage(content=msg.content))

        elif msg.role == ROLE_TOOL:
            if not msg.tool_call_id:
                raise DataIntegrityError(
                    f"Tool message {msg.id} has no tool_call_id"
                )
            if msg.tool_call_id not in issued:
                raise DataIntegrityError(
                    f"Tool message {msg.id} answers unknown call {msg.tool_call_id}"
                )
            pending.discard(msg.tool_call_id)
            projected.append(ToolMessage(
                content=msg.content, tool_call_id=msg.tool_call_id,
            ))

        elif msg.role == ROLE_SYSTEM:
            projected.append(SystemMessage(content=msg.content))

        else:
            raise DataIntegrityError(
                f"Message {msg.id} has unknown role '{msg.role}'"
            )

    if pending:
        raise DataIntegrityError(
            f"Tool call(s) never answered: {', '.join(sorted(pending))}"
        )
    return projected


def _project_call(msg: Message, call: ToolCall) -> dict:
    try:
        args = json.loads(call.arguments) if call.arguments else {}
    except json.JSONDecodeError as e:
        raise DataIntegrityError(
            f"Message {msg.id} tool call {call.id} has undecodable arguments: {e}"
        ) from e
    if not isinstance(args, dict):
        raise DataIntegrityError(
            f"Message {msg.id} tool call {call.id} arguments are not an object"
        )
    return {"id": call.id, "name": call.name, "args": args, "type": "tool_call"}
