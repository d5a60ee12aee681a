from __future__ import annotations

import asyncio
from sqlite3 import Cursor
from typing import Any, Dict, Mapping, Optional, Set, Tuple

from tether.base.provider import BaseProvider
from tether.exception import MissingDriver
from tether.sql.sqlite.translator import SQLiteErrorTranslator

try:
    import aiosqlite

    AIOSQLITE_ENABLED = True
except ModuleNotFoundError:
    AIOSQLITE_ENABLED = False


class SQLitePool(BaseProvider):
    """Provider for a SQLite database file.

    SQLite has no server side pool, so every `acquire` opens a dedicated
    connection in autocommit mode and `release` closes it. `max_size`
    bounds how many may be open at once. An in-memory database is private
    to one connection, so units of work need a file path (or a shared cache
    URI with `uri=True`).
    """

    scheme = "sqlite"
    POSITIONAL_SUB = r"?"
    KEYWORD_SUB = r":\2"
    TRANSLATOR_CLASS = SQLiteErrorTranslator

    def __init__(
        self,
        db_path: str,
        max_size: Optional[int] = None,
        timeout: Optional[float] = None,
        **connect_kwargs: Any,
    ):
        self._db_path = db_path
        self._connect_kwargs = connect_kwargs
        self._open_connections: Set[Any] = set()
        super().__init__(max_size=max_size, timeout=timeout)

    def _populate_connection_args(self):
        self._db = self._db_path

    def _populate_dsn(self):
        self._dsn = f"{self.scheme}:///{self._db_path}"
        self._full_dsn = self._dsn

    def _setup_pool(self):
        if not AIOSQLITE_ENABLED:
            raise MissingDriver(
                "SQLite driver not found. Try reinstalling tether: "
                "pip install tether[sqlite]"
            )
        self._slots = (
            asyncio.Semaphore(self.max_size) if self.max_size else None
        )

    async def open(self):
        """Nothing to open: connections are created on demand"""

    async def close(self):
        """Close any connection that was never released"""
        for conn in list(self._open_connections):
            await self._release(conn)

    async def _acquire(self):
        if self._slots:
            await self._slots.acquire()
        try:
            conn = await aiosqlite.connect(
                self._db_path, isolation_level=None, **self._connect_kwargs
            )
        except BaseException:
            if self._slots:
                self._slots.release()
            raise
        self._open_connections.add(conn)
        return conn

    async def _release(self, conn):
        self._open_connections.discard(conn)
        try:
            await conn.close()
        finally:
            if self._slots:
                self._slots.release()

    async def set_autocommit(self, conn, flag: bool) -> None:
        # Connections are opened with isolation_level=None, so SQLite is
        # back in autocommit as soon as COMMIT or ROLLBACK ends the BEGIN
        if not flag:
            await self._run(conn, "BEGIN")

    async def commit(self, conn) -> None:
        await self._run(conn, "COMMIT")

    async def rollback(self, conn) -> None:
        # Some failures (SQLITE_FULL, SQLITE_IOERR) already ended the
        # transaction inside SQLite
        if conn.in_transaction:
            await self._run(conn, "ROLLBACK")

    async def execute(
        self, conn, query: str, params: Optional[Mapping[str, Any]]
    ):
        return await conn.execute(query, dict(params or {}))

    async def fetchone(self, cursor) -> Optional[Dict[str, Any]]:
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._dict_factory(cursor, row)

    @staticmethod
    async def _run(conn, sql: str) -> None:
        async with conn.execute(sql):
            pass

    @staticmethod
    def _dict_factory(cursor: Cursor, row: Tuple[Any, ...]) -> Dict[str, Any]:
        return {val[0]: row[idx] for idx, val in enumerate(cursor.description)}
