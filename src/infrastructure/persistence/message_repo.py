"""
infrastructure.persistence.message_repo - SQLite message store.

Append-only log of conversation messages. Appending a message also bumps
the owning thread's updated_at inside the same transaction.
"""

from __future__ import annotations

import json
import logging
import sqlite3

from domain.entities import Message, ToolCall
from domain.exceptions import (
    DataIntegrityError,
    DuplicateMessageError,
    RepositoryError,
    ThreadNotFoundError,
)
from infrastructure.persistence.connection import AsyncSQLiteConnection

logger = logging.getLogger(__name__)


class SQLiteMessageStore:
    """Async SQLite implementation of MessageStore."""

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def append(self, message: Message) -> None:
        """Insert one message and advance its thread's updated_at.

        Raises:
            DuplicateMessageError: If the message id already exists.
            ThreadNotFoundError:   If the owning thread does not exist.
        """
        tool_calls = (
            json.dumps([c.to_dict() for c in message.tool_calls])
            if message.tool_calls else None
        )
        try:
            async with self._conn.acquire() as conn:
                await conn.execute(
                    """INSERT INTO messages
                       (id, thread_id, role, content, tool_calls,
                        tool_call_id, created_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?)""",
                    (message.id, message.thread_id, message.role,
                     message.content, tool_calls, message.tool_call_id,
                     message.created_at),
                )
                # MAX() keeps updated_at monotonic even if clocks step back.
                await conn.execute(
                    """UPDATE threads
                       SET updated_at = MAX(updated_at, ?)
                       WHERE id = ?""",
                    (message.created_at, message.thread_id),
                )
        except sqlite3.IntegrityError as e:
            text = str(e)
            if "UNIQUE" in text or "PRIMARY KEY" in text:
                raise DuplicateMessageError(
                    f"Message id already stored: {message.id}"
                ) from e
            if "FOREIGN KEY" in text:
                raise ThreadNotFoundError(message.thread_id) from e
            raise RepositoryError(f"Failed to append message {message.id}: {e}") from e

        logger.debug(
            "Appended %s message %s to thread %s",
            message.role, message.id, message.thread_id,
        )

    async def messages_for(self, thread_id: str) -> list[Message]:
        """Return a thread's messages, oldest first (ties in insertion order)."""
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                """SELECT * FROM messages
                   WHERE thread_id = ?
                   ORDER BY created_at ASC, rowid ASC""",
                (thread_id,),
            )
            return [self._row_to_entity(r) for r in rows]

    @staticmethod
    def _row_to_entity(row) -> Message:
        raw_calls = row["tool_calls"]
        tool_calls: list[ToolCall] = []
        if raw_calls:
            try:
                tool_calls = [ToolCall.from_dict(c) for c in json.loads(raw_calls)]
            except (json.JSONDecodeError, KeyError, TypeError) as e:
                raise DataIntegrityError(
                    f"Message {row['id']} has malformed tool_calls: {e}"
                ) from e
        return Message(
            id=row["id"],
            thread_id=row["thread_id"],
            role=row["role"],
            content=row["content"] or "",
            tool_calls=tool_calls,
            tool_call_id=row["tool_call_id"],
            created_at=row["created_at"],
        )
