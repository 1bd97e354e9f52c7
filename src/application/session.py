"""
application.session - In-memory conversation state for one orchestrator.

One ConversationSession per orchestrator instance. It is mutated only
through its methods so that composed updates (switch thread, append
message) never overwrite each other. The history mirrors the persisted
messages of the active thread.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from domain.entities import Message

logger = logging.getLogger(__name__)


class ConversationSession:
    """Active thread id, fixed persona prompt, and ordered history.

    Attributes:
        system_prompt:    Persona text, set once at construction.
    """

    def __init__(self, system_prompt: str):
        self.system_prompt = system_prompt
        self._active_thread_id: Optional[str] = None
        self._history: list[Message] = []

    @property
    def active_thread_id(self) -> Optional[str]:
        return self._active_thread_id

    @property
    def history(self) -> tuple[Message, ...]:
        """Read-only view; use append_message() to extend."""
        return tuple(self._history)

    def snapshot(self) -> list[Message]:
        """A copy of the history, safe to hand to the projector."""
        return list(self._history)

    def set_active_thread(
        self, thread_id: Optional[str], history: Iterable[Message] = (),
    ) -> None:
        """Switch threads, replacing the history wholesale."""
        self._active_thread_id = thread_id
        self._history = list(history)
        logger.debug(
            "Active thread set to %s (%d message(s))", thread_id, len(self._history),
        )

    def clear(self) -> None:
        self.set_active_thread(None)

    def append_message(self, message: Message) -> None:
        if message.thread_id != self._active_thread_id:
            raise ValueError(
                f"Message {message.id} belongs to thread {message.thread_id}, "
                f"not the active thread {self._active_thread_id}"
            )
        self._history.append(message)

    def __len__(self) -> int:
        return len(self._history)
