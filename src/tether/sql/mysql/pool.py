from __future__ import annotations

from inspect import isawaitable
from typing import Any, Dict, Mapping, Optional

from tether.base.provider import BaseProvider
from tether.exception import MissingDriver, TetherError
from tether.sql.mysql.translator import MysqlErrorTranslator

try:
    from asyncmy import Connection, create_pool
    from asyncmy.cursors import DictCursor

    MYSQL_ENABLED = True
except ModuleNotFoundError:
    MYSQL_ENABLED = False
    Connection = type("Connection", (), {})  # type: ignore

DEFAULT_MAX_SIZE = 10


class MysqlPool(BaseProvider):
    """Provider backed by an asyncmy pool"""

    scheme = "mysql"
    TRANSLATOR_CLASS = MysqlErrorTranslator

    def _setup_pool(self):
        if not MYSQL_ENABLED:
            raise MissingDriver(
                "MySQL driver not found. Try reinstalling tether: "
                "pip install tether[mysql]"
            )
        self._pool = None

    async def open(self):
        """Open connections to the pool"""
        self._pool = await create_pool(
            user=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            db=self.db,
            minsize=self.min_size,
            maxsize=self.max_size or DEFAULT_MAX_SIZE,
            autocommit=True,
        )

    async def close(self):
        """Close connections to the pool"""
        if self._pool is None:
            return
        self._pool.close()
        await self._pool.wait_closed()
        self._pool = None

    async def _acquire(self) -> Connection:
        if self._pool is None:
            raise TetherError(f"{self} has not been opened")
        return await self._pool.acquire()

    async def _release(self, conn: Connection) -> None:
        result = self._pool.release(conn)
        if isawaitable(result):
            await result

    async def set_autocommit(self, conn: Connection, flag: bool) -> None:
        await conn.autocommit(flag)

    async def commit(self, conn: Connection) -> None:
        await conn.commit()

    async def rollback(self, conn: Connection) -> None:
        await conn.rollback()

    async def execute(
        self, conn: Connection, query: str, params: Optional[Mapping[str, Any]]
    ):
        cursor = conn.cursor(DictCursor)
        try:
            await cursor.execute(query, params)
        except BaseException:
            await self.close_cursor(cursor)
            raise
        return cursor

    async def fetchone(self, cursor) -> Optional[Dict[str, Any]]:
        return await cursor.fetchone()
