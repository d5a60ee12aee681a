from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import namedtuple
from contextlib import asynccontextmanager
from inspect import isawaitable
from typing import (
    Any,
    AsyncIterator,
    Dict,
    Mapping,
    Optional,
    Set,
    Type,
)
from urllib.parse import urlparse

from tether.exception import TetherError
from tether.translator import ErrorTranslator

logger = logging.getLogger(__name__)

UrlMapping = namedtuple("UrlMapping", ("key", "cast"))


URLPARSE_MAPPING = {
    "hostname": UrlMapping("_host", str),
    "username": UrlMapping("_user", str),
    "password": UrlMapping("_password", str),
    "port": UrlMapping("_port", int),
    "path": UrlMapping("_db", lambda value: value.replace("/", "")),
    "query": UrlMapping("_query", str),
}
DEFAULT_PORTS = {"postgres": 5432, "postgresql": 5432, "mysql": 3306}


class BaseProvider(ABC):
    """Source of pooled physical connections.

    Subclasses adapt one async driver to the small set of calls the
    coordinator and the repository need. Nothing here knows about units of
    work: whether a connection is bound to a caller is the concern of the
    `ConnectionRegistry`.
    """

    scheme = "dummy"
    POSITIONAL_SUB: str = r"%s"
    KEYWORD_SUB: str = r"%(\2)s"
    TRANSLATOR_CLASS: Type[ErrorTranslator] = ErrorTranslator
    registered_providers: Set[Type[BaseProvider]] = set()

    def __init_subclass__(cls) -> None:
        BaseProvider.registered_providers.add(cls)

    @abstractmethod
    def _setup_pool(self): ...

    @abstractmethod
    async def open(self): ...

    @abstractmethod
    async def close(self): ...

    @abstractmethod
    async def _acquire(self) -> Any: ...

    @abstractmethod
    async def _release(self, conn: Any) -> None: ...

    @abstractmethod
    async def set_autocommit(self, conn: Any, flag: bool) -> None: ...

    @abstractmethod
    async def commit(self, conn: Any) -> None: ...

    @abstractmethod
    async def rollback(self, conn: Any) -> None: ...

    @abstractmethod
    async def execute(
        self, conn: Any, query: str, params: Optional[Mapping[str, Any]]
    ) -> Any: ...

    @abstractmethod
    async def fetchone(self, cursor: Any) -> Optional[Dict[str, Any]]: ...

    def __init__(
        self,
        dsn: Optional[str] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        db: Optional[str] = None,
        query: Optional[str] = None,
        min_size: int = 1,
        max_size: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """Provider initialization.

        Args:
            dsn (str, optional): DB data source name
            host (str, optional): DB address URL or IP
            port (int, optional): DB port
            user (str, optional): DB user
            password (str, optional): DB password
            db (str, optional): DB name
            query (str, optional): DB query parameters. Defaults to None
            min_size (int, optional): Minimum number of connections in pool.
                Defaults to 1
            max_size (int, optional): Maximum number of connections in pool.
                Defaults to None
            timeout (float, optional): Seconds to wait for a connection
                before failing. Defaults to None, meaning wait forever
        """

        if dsn and host:
            raise TetherError("Cannot connect to DB using host and dsn")

        if not dsn:
            if port is not None and (
                not isinstance(port, int) or port not in range(0, 65536)
            ):
                raise TetherError(
                    "port: must be an integer between 0 and 65535"
                )

            if host is not None and (
                not isinstance(host, str) or not len(host) > 0
            ):
                raise TetherError(
                    "host: must be a string at least 1 character long"
                )

        if password is not None and (
            not isinstance(password, str) or not len(password) > 0
        ):
            raise TetherError(
                "password: must be a string at least 1 character long"
            )

        if max_size is not None and max_size < max(min_size, 1):
            raise TetherError(
                "max_size: must be at least min_size and greater than 0"
            )

        self._dsn = dsn
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._db = db
        self._query = query
        self._min_size = min_size
        self._max_size = max_size
        self._timeout = timeout
        self._full_dsn: Optional[str] = None

        self._populate_connection_args()
        self._populate_dsn()
        self._setup_pool()

    def __str__(self) -> str:
        return f"<{self.__class__.__name__} {self.dsn}>"

    def _populate_connection_args(self):
        if not self._dsn:
            return
        parts = urlparse(self._dsn)
        defaults = {
            "port": DEFAULT_PORTS.get(parts.scheme),
            "hostname": "localhost",
            "path": "/",
            "query": "",
        }
        for key, mapping in URLPARSE_MAPPING.items():
            if getattr(self, mapping.key):
                continue
            value = getattr(parts, key, None)
            if value is None:
                value = defaults.get(key)
            if value is not None:
                setattr(self, mapping.key, mapping.cast(value))

    def _populate_dsn(self):
        credentials = f"{self.user}:...@" if self.password else f"{self.user}@"
        location = f"{self.host}:{self.port}/{self.db}"
        self._dsn = f"{self.scheme}://{credentials}{location}"
        self._full_dsn = (
            f"{self.scheme}://{self.user}:{self.password}@{location}"
            if self.password
            else self._dsn
        )
        if self._query:
            self._full_dsn += f"?{self._query}"

    @property
    def dsn(self):
        return self._dsn

    @property
    def host(self):
        return self._host

    @property
    def port(self):
        return self._port

    @property
    def user(self):
        return self._user

    @property
    def password(self):
        return self._password

    @property
    def db(self):
        return self._db

    @property
    def full_dsn(self):
        return self._full_dsn

    @property
    def min_size(self):
        return self._min_size

    @property
    def max_size(self):
        return self._max_size

    @property
    def timeout(self):
        return self._timeout

    async def acquire(self, timeout: Optional[float] = None) -> Any:
        """Obtain a physical connection, waiting at most `timeout` seconds

        Args:
            timeout (float, optional): Overrides the provider timeout.
                Defaults to `None`.

        Raises:
            asyncio.TimeoutError: When no connection became available

        Returns:
            Any: A driver connection in autocommit mode
        """
        timeout = timeout if timeout is not None else self._timeout
        conn = await asyncio.wait_for(self._acquire(), timeout=timeout)
        logger.debug("Acquired connection %s from %s", id(conn), self)
        return conn

    async def release(self, conn: Any) -> None:
        """Hand a connection back. Called exactly once per `acquire`."""
        await self._release(conn)
        logger.debug("Released connection %s to %s", id(conn), self)

    def translator(self) -> ErrorTranslator:
        """Build the error translator that understands this driver's codes"""
        return self.TRANSLATOR_CLASS()

    async def close_cursor(self, cursor: Any) -> None:
        result = cursor.close()
        if isawaitable(result):
            await result

    @asynccontextmanager
    async def connection(
        self, timeout: Optional[float] = None
    ) -> AsyncIterator[Any]:
        """Obtain a connection for the duration of a block

        Args:
            timeout (float, optional): Time before an error is raised on
                failure to connect. Defaults to `None`.

        Yields:
            Iterator[AsyncIterator[Any]]: A database connection
        """
        conn = await self.acquire(timeout=timeout)
        try:
            yield conn
        finally:
            await self.release(conn)
