from typing import Any, Dict, Mapping, Optional

from tether.base.provider import BaseProvider
from tether.exception import MissingDriver
from tether.sql.postgres.translator import PostgresErrorTranslator

try:
    from psycopg import AsyncConnection
    from psycopg.rows import dict_row
    from psycopg_pool import AsyncConnectionPool

    POSTGRES_ENABLED = True
except ModuleNotFoundError:
    POSTGRES_ENABLED = False
    AsyncConnection = type("Connection", (), {})  # type: ignore
    AsyncConnectionPool = type("Connection", (), {})  # type: ignore


class PostgresPool(BaseProvider):
    """Provider backed by a `psycopg_pool.AsyncConnectionPool`.

    Pooled connections are created in autocommit mode; a unit of work
    switches its connection to manual mode and back.
    """

    scheme = "postgres"
    TRANSLATOR_CLASS = PostgresErrorTranslator

    def _setup_pool(self):
        if not POSTGRES_ENABLED:
            raise MissingDriver(
                "Postgres driver not found. Try reinstalling tether: "
                "pip install tether[postgres]"
            )
        self._pool = AsyncConnectionPool(
            self.full_dsn,
            min_size=self.min_size,
            max_size=self.max_size,
            kwargs={"autocommit": True},
            open=False,
        )

    async def open(self):
        """Open connections to the pool"""
        await self._pool.open()

    async def close(self):
        """Close connections to the pool"""
        await self._pool.close()

    async def _acquire(self) -> AsyncConnection:
        return await self._pool.getconn()

    async def _release(self, conn: AsyncConnection) -> None:
        await self._pool.putconn(conn)

    async def set_autocommit(self, conn: AsyncConnection, flag: bool) -> None:
        await conn.set_autocommit(flag)

    async def commit(self, conn: AsyncConnection) -> None:
        await conn.commit()

    async def rollback(self, conn: AsyncConnection) -> None:
        await conn.rollback()

    async def execute(
        self,
        conn: AsyncConnection,
        query: str,
        params: Optional[Mapping[str, Any]],
    ):
        return await conn.execute(query, params)

    async def fetchone(self, cursor) -> Optional[Dict[str, Any]]:
        cursor.row_factory = dict_row
        return await cursor.fetchone()
