"""
infrastructure.llm.chat_completion - CompletionPort backed by a LangChain chat model.

Requests exactly one complete response per call (no streaming) and
converts the returned AIMessage into a domain Completion.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Sequence
from uuid import uuid4

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage

from domain.entities import ToolCall
from domain.exceptions import UpstreamError
from domain.models import Completion, ToolDescriptor

logger = logging.getLogger(__name__)


class LangChainCompletionService:
    """Implements CompletionPort (structural typing, no explicit inheritance)."""

    def __init__(self, llm: BaseChatModel):
        self._llm = llm

    async def complete(
        self,
        messages: Sequence[BaseMessage],
        tools: Optional[Sequence[ToolDescriptor]] = None,
    ) -> Completion:
        """Request one completion, offering tools only when any are given.

        Raises:
            UpstreamError: If the model call fails for any reason.
        """
        runnable: Any = self._llm
        if tools:
            runnable = self._llm.bind_tools(
                [t.to_openai_tool() for t in tools],
                tool_choice="auto",
            )

        logger.info(
            "Requesting completion (%d message(s), %d tool(s))",
            len(messages), len(tools or ()),
        )
        try:
            response = await runnable.ainvoke(list(messages))
        except Exception as e:
            logger.exception("Completion request failed")
            raise UpstreamError(f"Completion request failed: {e}") from e

        if not isinstance(response, AIMessage):
            raise UpstreamError(
                f"Unexpected completion type: {type(response).__name__}"
            )
        return _to_completion(response)


def _to_completion(message: AIMessage) -> Completion:
    calls = tuple(
        ToolCall(
            id=call.get("id") or f"call_{uuid4().hex[:24]}",
            name=call["name"],
            arguments=json.dumps(call.get("args") or {}),
        )
        for call in message.tool_calls
    )
    return Completion(text=_content_text(message.content), tool_calls=calls)


def _content_text(content: Any) -> str:
    """Flatten AIMessage content (str or list of content blocks) to text."""
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)
