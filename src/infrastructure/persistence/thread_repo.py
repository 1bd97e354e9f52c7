"""
infrastructure.persistence.thread_repo - SQLite thread repository.

Stores thread metadata (id, title, timestamps, metadata JSON).
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from domain.entities import Thread
from domain.exceptions import DataIntegrityError
from infrastructure.persistence.connection import AsyncSQLiteConnection

logger = logging.getLogger(__name__)


class SQLiteThreadRepository:
    """Async SQLite implementation of ThreadRepository."""

    def __init__(self, connection: AsyncSQLiteConnection):
        self._conn = connection

    async def save(self, thread: Thread) -> None:
        async with self._conn.acquire() as conn:
            await conn.execute(
                """INSERT INTO threads (id, title, created_at, updated_at, metadata)
                   VALUES (?, ?, ?, ?, ?)""",
                (thread.id, thread.title, thread.created_at, thread.updated_at,
                 json.dumps(thread.metadata) if thread.metadata else None),
            )

    async def get_by_id(self, thread_id: str) -> Optional[Thread]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                "SELECT * FROM threads WHERE id = ?", (thread_id,),
            )
            return self._row_to_entity(rows[0]) if rows else None

    async def list_all(self) -> list[Thread]:
        async with self._conn.acquire() as conn:
            rows = await conn.execute_fetchall(
                """SELECT * FROM threads
                   ORDER BY updated_at DESC, created_at DESC, id ASC""",
            )
            return [self._row_to_entity(r) for r in rows]

    async def update_title(self, thread_id: str, title: Optional[str]) -> bool:
        async with self._conn.acquire() as conn:
            cursor = await conn.execute(
                "UPDATE threads SET title = ? WHERE id = ?", (title, thread_id),
            )
            return cursor.rowcount > 0

    async def delete(self, thread_id: str) -> bool:
        """Delete a thread and all its messages in one transaction.

        Returns False when the thread did not exist.
        """
        async with self._conn.acquire() as conn:
            await conn.execute(
                "DELETE FROM messages WHERE thread_id = ?", (thread_id,),
            )
            cursor = await conn.execute(
                "DELETE FROM threads WHERE id = ?", (thread_id,),
            )
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted thread %s", thread_id)
        return deleted

    @staticmethod
    def _row_to_entity(row) -> Thread:
        raw_metadata = row["metadata"]
        try:
            metadata = json.loads(raw_metadata) if raw_metadata else {}
        except json.JSONDecodeError as e:
            raise DataIntegrityError(
                f"Thread {row['id']} has malformed metadata: {e}"
            ) from e
        return Thread(
            id=row["id"],
            title=row["title"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            metadata=metadata,
        )
