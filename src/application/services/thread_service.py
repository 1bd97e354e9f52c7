"""
application.services.thread_service - Thread lifecycle and history loading.

Creates, selects, lists, renames and deletes threads, and keeps the
ConversationSession pointed at the right thread with the right history.
"""

from __future__ import annotations

import logging
import time
from typing import Optional
from uuid import uuid4

from application.session import ConversationSession
from domain.entities import Message, Thread
from domain.exceptions import ThreadNotFoundError
from domain.ports import MessageStore, ThreadRepository

logger = logging.getLogger(__name__)

TITLE_MAX_CHARS = 60


def now_ms() -> int:
    """Wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class ThreadService:
    """Creates and loads threads into a ConversationSession."""

    def __init__(
        self,
        thread_repo: ThreadRepository,
        message_store: MessageStore,
        session: ConversationSession,
        clock=now_ms,
    ):
        self._thread_repo = thread_repo
        self._message_store = message_store
        self._session = session
        self._clock = clock

    @property
    def session(self) -> ConversationSession:
        return self._session

    async def create_thread(self, title: Optional[str] = None) -> str:
        """Persist a new thread and make it the active, empty conversation."""
        now = self._clock()
        thread = Thread(
            id=str(uuid4()),
            title=title or None,
            created_at=now,
            updated_at=now,
        )
        await self._thread_repo.save(thread)
        self._session.set_active_thread(thread.id)
        logger.info("Created thread %s", thread.id)
        return thread.id

    async def load_thread(self, thread_id: str) -> bool:
        """Make a stored thread active, replacing the session history.

        Returns False, leaving the session untouched, if the thread
        does not exist.
        """
        thread = await self._thread_repo.get_by_id(thread_id)
        if thread is None:
            logger.info("Thread %s not found; session unchanged", thread_id)
            return False

        messages = await self._message_store.messages_for(thread_id)
        self._session.set_active_thread(thread_id, messages)
        logger.info("Loaded thread %s with %d message(s)", thread_id, len(messages))
        return True

    async def list_threads(self) -> list[Thread]:
        """All threads, most recently active first."""
        return await self._thread_repo.list_all()

    async def get_thread(self, thread_id: str) -> Optional[Thread]:
        return await self._thread_repo.get_by_id(thread_id)

    async def get_messages(self, thread_id: str) -> list[Message]:
        """Stored messages for a thread without touching the session.

        Raises:
            ThreadNotFoundError: If the thread does not exist.
        """
        if await self._thread_repo.get_by_id(thread_id) is None:
            raise ThreadNotFoundError(thread_id)
        return await self._message_store.messages_for(thread_id)

    async def rename_thread(self, thread_id: str, title: Optional[str]) -> None:
        if not await self._thread_repo.update_title(thread_id, title or None):
            raise ThreadNotFoundError(thread_id)

    async def delete_thread(self, thread_id: str) -> bool:
        """Delete a thread and its messages; clears the session if it was active."""
        deleted = await self._thread_repo.delete(thread_id)
        if deleted and self._session.active_thread_id == thread_id:
            self._session.clear()
        return deleted

    async def auto_title(self, thread_id: str, first_message: str) -> None:
        """Title an untitled thread after its first user message.

        Uses the first 60 chars of the message so the thread list is
        meaningful without an explicit title.
        """
        thread = await self._thread_repo.get_by_id(thread_id)
        if thread is None or thread.title:
            return
        title = first_message[:TITLE_MAX_CHARS].strip()
        if len(first_message) > TITLE_MAX_CHARS:
            title += "…"
        await self._thread_repo.update_title(thread_id, title)
