"""
infrastructure.persistence.connection - Async SQLite connection manager.

Every repository operation runs inside one acquire() block, which is
also the transaction boundary: commit on success, rollback on error.
A cancellation that lands before the commit leaves nothing behind:
closing the connection discards the open transaction.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import aiosqlite

logger = logging.getLogger(__name__)


class AsyncSQLiteConnection:
    """Async SQLite connection provider with auto-commit/rollback."""

    def __init__(self, db_path: str, timeout: float = 30.0):
        self._db_path = db_path
        self._timeout = timeout

    @property
    def db_path(self) -> str:
        return self._db_path

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield an async SQLite connection with FK support.

        Commits on success, rolls back on exception.
        """
        async with aiosqlite.connect(self._db_path, timeout=self._timeout) as conn:
            await conn.execute("PRAGMA foreign_keys = ON")
            conn.row_factory = aiosqlite.Row
            try:
                yield conn
                await conn.commit()
            except Exception:
                await conn.rollback()
                logger.warning(
                    "Database operation on %s failed, transaction rolled back.",
                    self._db_path,
                )
                raise
