import asyncio
import sqlite3
from unittest.mock import AsyncMock, MagicMock

import pytest

from tether import ConnectionRegistry, SQLitePool, Tether
from tether.base.provider import BaseProvider
from tether.transaction import TransactionCoordinator

SCHEMA = """
CREATE TABLE member (
    member_id VARCHAR(10) PRIMARY KEY,
    money INTEGER NOT NULL DEFAULT 0
)
"""


class IntegrityError(Exception):
    """Stands in for a DB-API driver's IntegrityError"""


class OperationalError(Exception):
    """Stands in for a DB-API driver's OperationalError"""


class FakeProvider(BaseProvider):
    """Provider handing out mock connections and recording every call"""

    scheme = "fake"

    def __init__(self, **kwargs):
        self.acquired = 0
        self.released = 0
        self.connections = []
        self.events = []
        self.row = None
        self.delay = 0.0
        self.acquire_error = None
        self.autocommit_error = None
        self.execute_error = None
        self.release_error = None
        super().__init__(**kwargs)

    @property
    def outstanding(self):
        return self.acquired - self.released

    def _setup_pool(self):
        pass

    async def open(self):
        pass

    async def close(self):
        pass

    async def _acquire(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.acquire_error:
            raise self.acquire_error
        self.acquired += 1
        conn = MagicMock(name=f"connection-{self.acquired}")
        conn.set_autocommit = AsyncMock()
        conn.commit = AsyncMock()
        conn.rollback = AsyncMock()
        cursor = MagicMock(rowcount=1)
        cursor.fetchone = AsyncMock(side_effect=lambda: self.row)
        cursor.close = AsyncMock()
        conn.execute = AsyncMock(return_value=cursor)
        conn.cursor = cursor
        self.connections.append(conn)
        self.events.append(("acquire", conn))
        return conn

    async def _release(self, conn):
        self.released += 1
        self.events.append(("release", conn))
        if self.release_error:
            raise self.release_error

    async def set_autocommit(self, conn, flag):
        self.events.append(("autocommit", flag))
        if self.autocommit_error and not flag:
            raise self.autocommit_error
        await conn.set_autocommit(flag)

    async def commit(self, conn):
        self.events.append(("commit", conn))
        await conn.commit()

    async def rollback(self, conn):
        self.events.append(("rollback", conn))
        await conn.rollback()

    async def execute(self, conn, query, params):
        self.events.append(("execute", query))
        if self.execute_error:
            raise self.execute_error
        return await conn.execute(query, params)

    async def fetchone(self, cursor):
        return await cursor.fetchone()

    async def close_cursor(self, cursor):
        self.events.append(("close_cursor", cursor))
        await super().close_cursor(cursor)

    def event_names(self):
        return [name for name, *_ in self.events]


class CountingSQLitePool(SQLitePool):
    scheme = "counting"

    def __init__(self, *args, **kwargs):
        self.acquired = 0
        self.released = 0
        super().__init__(*args, **kwargs)

    @property
    def outstanding(self):
        return self.acquired - self.released

    async def _acquire(self):
        conn = await super()._acquire()
        self.acquired += 1
        return conn

    async def _release(self, conn):
        self.released += 1
        await super()._release(conn)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def coordinator(provider, registry):
    return TransactionCoordinator(provider, registry)


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "members.db"
    conn = sqlite3.connect(path)
    conn.execute(SCHEMA)
    conn.commit()
    conn.close()
    return str(path)


@pytest.fixture
def pool(db_path):
    return CountingSQLitePool(db_path)


@pytest.fixture
async def tether(pool):
    async with Tether(pool=pool) as instance:
        yield instance
