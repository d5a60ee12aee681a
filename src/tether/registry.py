from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from threading import Lock
from typing import Any, Dict, Hashable, Iterator, Optional

from tether.exception import ProgrammingUsageError

logger = logging.getLogger(__name__)


def current_context() -> Hashable:
    """The execution context key of the caller: its running asyncio task.

    Raises:
        ProgrammingUsageError: When called outside of a running task

    Returns:
        Hashable: The current task
    """
    try:
        task = asyncio.current_task()
    except RuntimeError:
        task = None
    if task is None:
        raise ProgrammingUsageError(
            "No running task to resolve a connection binding for. "
            "Pass an explicit context."
        )
    return task


@dataclass
class BoundConnection:
    connection: Any
    transaction_id: str = ""
    depth: int = 1
    rollback_only: bool = False


class ConnectionRegistry:
    """Table of which physical connection belongs to which caller.

    Each entry maps an execution context key (by default the running
    asyncio task, see `current_context`) to the one connection its unit of
    work holds. A lookup only ever sees the entry for its own key, so two
    tasks can never observe each other's connection. Child tasks get their
    own key and therefore run in autonomous mode.

    Example:

    ```python
    registry = ConnectionRegistry()
    registry.bind(conn)
    assert registry.lookup() is conn
    registry.unbind()
    ```
    """

    def __init__(self) -> None:
        self._bindings: Dict[Hashable, BoundConnection] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._bindings)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self.snapshot())

    def __contains__(self, context: Hashable) -> bool:
        with self._lock:
            return context in self._bindings

    def bind(
        self,
        connection: Any,
        context: Optional[Hashable] = None,
        transaction_id: str = "",
    ) -> BoundConnection:
        """Associate a connection with an execution context

        Args:
            connection (Any): The physical connection
            context (Hashable, optional): Execution context key. Defaults to
                the running task.
            transaction_id (str, optional): Identifier used in log lines.
                Defaults to `""`.

        Raises:
            ProgrammingUsageError: When the context already has a binding

        Returns:
            BoundConnection: The new entry
        """
        key = self._resolve(context)
        with self._lock:
            if key in self._bindings:
                raise ProgrammingUsageError(
                    f"A connection is already bound to {key!r}"
                )
            entry = BoundConnection(connection, transaction_id=transaction_id)
            self._bindings[key] = entry
        logger.debug("Bound connection %s to %r", id(connection), key)
        return entry

    def lookup(self, context: Optional[Hashable] = None) -> Optional[Any]:
        """Return the bound connection, or `None` when nothing is bound"""
        entry = self.entry(context)
        return entry.connection if entry else None

    def entry(
        self, context: Optional[Hashable] = None
    ) -> Optional[BoundConnection]:
        key = self._resolve(context)
        with self._lock:
            return self._bindings.get(key)

    def unbind(self, context: Optional[Hashable] = None) -> Any:
        """Remove the binding for a context

        Raises:
            ProgrammingUsageError: When the context has no binding

        Returns:
            Any: The connection that was bound
        """
        key = self._resolve(context)
        with self._lock:
            entry = self._bindings.pop(key, None)
        if entry is None:
            raise ProgrammingUsageError(f"No connection is bound to {key!r}")
        logger.debug(
            "Unbound connection %s from %r", id(entry.connection), key
        )
        return entry.connection

    def enter(self, context: Optional[Hashable] = None) -> int:
        """Record one more nesting level on an existing binding"""
        key = self._resolve(context)
        with self._lock:
            entry = self._require(key)
            entry.depth += 1
            return entry.depth

    def leave(
        self, context: Optional[Hashable] = None, rollback_only: bool = False
    ) -> int:
        """Drop one nesting level. The outermost level is removed by
        `unbind`, never here."""
        key = self._resolve(context)
        with self._lock:
            entry = self._require(key)
            if entry.depth <= 1:
                raise ProgrammingUsageError(
                    f"Cannot leave the outermost level bound to {key!r}"
                )
            entry.depth -= 1
            entry.rollback_only = entry.rollback_only or rollback_only
            return entry.depth

    def snapshot(self) -> Dict[Hashable, BoundConnection]:
        """A copy of the binding table, for auditing"""
        with self._lock:
            return dict(self._bindings)

    def _require(self, key: Hashable) -> BoundConnection:
        entry = self._bindings.get(key)
        if entry is None:
            raise ProgrammingUsageError(f"No connection is bound to {key!r}")
        return entry

    @staticmethod
    def _resolve(context: Optional[Hashable]) -> Hashable:
        return current_context() if context is None else context
