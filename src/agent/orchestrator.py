"""
agent.orchestrator - The chat turn state machine.

Runs one user utterance through at most two completions:

    IDLE → AWAITING_FIRST_COMPLETION → [TOOL_ROUND_IN_PROGRESS] → DONE

Every message produced along the way is written to the message store
first and then appended to the in-memory session, so after a successful
turn the two agree exactly. A failed completion leaves the user message
persisted and writes nothing for the failed call. After any failed or
cancelled turn the session is reloaded from the store.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional, Sequence
from uuid import uuid4

from agent.projection import project_history
from agent.tools.catalog import ToolCatalog
from application.services.thread_service import ThreadService, now_ms
from application.session import ConversationSession
from domain.entities import (
    ROLE_ASSISTANT,
    ROLE_TOOL,
    ROLE_USER,
    Message,
    Thread,
    ToolCall,
)
from domain.exceptions import EmptyMessageError, ThreadNotFoundError, ToolExecutionError
from domain.models import ChatResult, TurnState
from domain.ports import CompletionPort, MessageStore

logger = logging.getLogger(__name__)


class ConversationOrchestrator:
    """Drives chat turns for a single conversation lineage.

    Constructed by factory.py with all dependencies injected. Turns are
    serialized: a second chat() call waits for the running one.
    """

    def __init__(
        self,
        completion: CompletionPort,
        tools: ToolCatalog,
        threads: ThreadService,
        message_store: MessageStore,
        clock=now_ms,
    ):
        self._completion = completion
        self._tools = tools
        self._threads = threads
        self._message_store = message_store
        self._clock = clock
        self._state = TurnState.IDLE
        self._lock = asyncio.Lock()

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def session(self) -> ConversationSession:
        return self._threads.session

    @property
    def history(self) -> tuple[Message, ...]:
        return self.session.history

    # ------------------------------------------------------------------
    # Thread lifecycle (delegated)
    # ------------------------------------------------------------------

    async def create_thread(self, title: Optional[str] = None) -> str:
        return await self._threads.create_thread(title)

    async def load_thread(self, thread_id: str) -> bool:
        return await self._threads.load_thread(thread_id)

    async def list_threads(self) -> list[Thread]:
        return await self._threads.list_threads()

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def chat(self, user_message: str, thread_id: Optional[str] = None) -> ChatResult:
        """Process one user message and return the final assistant reply.

        Args:
            user_message: The user's text; must not be blank.
            thread_id:    Thread to continue. Defaults to the active thread,
                          or a new one when none is active.

        Raises:
            EmptyMessageError:   If user_message is blank.
            ThreadNotFoundError: If thread_id does not exist.
            UpstreamError:       If a completion request fails.
            DataIntegrityError:  If the stored history cannot be projected.
        """
        if not user_message or not user_message.strip():
            raise EmptyMessageError("Message must not be empty")

        async with self._lock:
            try:
                return await self._run_turn(user_message, thread_id)
            except BaseException:
                self._state = TurnState.IDLE
                await self._recover_after_abort()
                raise

    async def _run_turn(self, user_message: str, thread_id: Optional[str]) -> ChatResult:
        session = self.session
        if thread_id and thread_id != session.active_thread_id:
            if not await self._threads.load_thread(thread_id):
                raise ThreadNotFoundError(thread_id)
        if session.active_thread_id is None:
            await self._threads.create_thread()
        active_id = session.active_thread_id

        is_first_user_message = not any(m.role == ROLE_USER for m in session.history)
        await self._record(ROLE_USER, user_message)
        if is_first_user_message:
            await self._threads.auto_title(active_id, user_message)

        logger.info(
            "Chat turn on thread %s (%d message(s)): %s",
            active_id, len(session), user_message[:80],
        )

        await self._tools.ensure_connected()
        available = self._tools.available_tools()

        self._state = TurnState.AWAITING_FIRST_COMPLETION
        completion = await self._completion.complete(
            project_history(session.system_prompt, session.snapshot()),
            available or None,
        )

        response = completion.text
        if completion.wants_tools:
            self._state = TurnState.TOOL_ROUND_IN_PROGRESS
            await self._record(
                ROLE_ASSISTANT, completion.text, tool_calls=list(completion.tool_calls),
            )
            for call in completion.tool_calls:
                content = await self._run_tool_call(call)
                await self._record(ROLE_TOOL, content, tool_call_id=call.id)

            # No tools on the follow-up: one tool round per user turn.
            follow_up = await self._completion.complete(
                project_history(session.system_prompt, session.snapshot()),
                None,
            )
            if follow_up.wants_tools:
                logger.warning(
                    "Ignoring %d tool call(s) requested after the tool round",
                    len(follow_up.tool_calls),
                )
            response = follow_up.text

        await self._record(ROLE_ASSISTANT, response)
        self._state = TurnState.DONE
        logger.info(
            "Chat turn on thread %s finished, response starts with: %s",
            active_id, response[:80],
        )
        return ChatResult(response=response, thread_id=active_id)

    async def _recover_after_abort(self) -> None:
        """Bring the session back in line with the store after a failed turn.

        A cancellation can land after a write committed but before the
        session saw it, so the active thread is reloaded from the store.
        Tool calls left without a result by an interrupted tool round are
        then answered with an error payload, keeping the thread projectable.
        """
        thread_id = self.session.active_thread_id
        if thread_id is None:
            return
        try:
            await self._threads.load_thread(thread_id)
            for call in _unanswered_calls(self.session.history):
                await self._record(
                    ROLE_TOOL,
                    json.dumps({"error": f"Tool call '{call.name}' was interrupted"}),
                    tool_call_id=call.id,
                )
        except Exception:
            logger.exception("Could not restore thread %s after an aborted turn", thread_id)

    async def _run_tool_call(self, call: ToolCall) -> str:
        """Invoke one tool call; failures become an error payload, never raise."""
        try:
            arguments = _decode_arguments(call)
            result = await self._tools.invoke(call.name, arguments)
            return serialize_tool_result(result)
        except Exception as e:
            logger.warning("Tool call %s (%s) failed: %s", call.id, call.name, e)
            return json.dumps({"error": str(e) or type(e).__name__})

    async def _record(
        self,
        role: str,
        content: str,
        tool_calls: Optional[list[ToolCall]] = None,
        tool_call_id: Optional[str] = None,
    ) -> Message:
        """Persist a new message, then append it to the session."""
        message = Message(
            id=str(uuid4()),
            thread_id=self.session.active_thread_id,
            role=role,
            content=content,
            tool_calls=tool_calls or [],
            tool_call_id=tool_call_id,
            created_at=self._next_timestamp(),
        )
        await self._message_store.append(message)
        self.session.append_message(message)
        return message

    def _next_timestamp(self) -> int:
        # Never earlier than the last message, so reload order matches append order.
        history = self.session.history
        now = self._clock()
        return max(now, history[-1].created_at) if history else now


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _decode_arguments(call: ToolCall) -> dict[str, Any]:
    try:
        arguments = json.loads(call.arguments) if call.arguments else {}
    except json.JSONDecodeError as e:
        raise ToolExecutionError(
            f"Invalid JSON arguments for tool '{call.name}': {e}"
        ) from e
    if not isinstance(arguments, dict):
        raise ToolExecutionError(f"Arguments for tool '{call.name}' must be an object")
    return arguments


def _unanswered_calls(history: Sequence[Message]) -> list[ToolCall]:
    """Calls of the last tool-issuing assistant message that have no tool result."""
    for index in range(len(history) - 1, -1, -1):
        msg = history[index]
        if msg.role == ROLE_ASSISTANT and msg.tool_calls:
            answered = {
                m.tool_call_id for m in history[index + 1:] if m.role == ROLE_TOOL
            }
            return [c for c in msg.tool_calls if c.id not in answered]
    return []


def serialize_tool_result(result: Any) -> str:
    """Render a tool result as a single text payload.

    Strings pass through unchanged; everything else is JSON-encoded.
    """
    if isinstance(result, str):
        return result
    return json.dumps(result, default=str, ensure_ascii=False)
