from __future__ import annotations

import time
from enum import Enum
from typing import Any, Hashable


class TransactionState(Enum):
    OPEN = "open"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled back"


class UnitOfWork:
    """Handle for one level of an open unit of work.

    Only the handle with `depth == 1` owns the connection lifecycle. Nested
    handles (reentrant mode) share the outer connection and merely record
    their outcome.
    """

    def __init__(
        self,
        transaction_id: str,
        context: Hashable,
        connection: Any,
        depth: int = 1,
    ) -> None:
        self._transaction_id = transaction_id
        self._context = context
        self._connection = connection
        self._depth = depth
        self._state = TransactionState.OPEN
        self._start_time = time.monotonic()

    def __str__(self) -> str:
        return (
            f"<UnitOfWork {self.transaction_id} depth={self.depth} "
            f"({self.state.value})>"
        )

    @property
    def transaction_id(self) -> str:
        return self._transaction_id

    @property
    def context(self) -> Hashable:
        return self._context

    @property
    def connection(self) -> Any:
        return self._connection

    @property
    def depth(self) -> int:
        return self._depth

    @property
    def outermost(self) -> bool:
        return self._depth == 1

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._start_time

    @property
    def is_active(self) -> bool:
        """Check if the unit of work can still be committed or rolled back"""
        return self._state is TransactionState.OPEN

    @property
    def is_committed(self) -> bool:
        return self._state is TransactionState.COMMITTED

    @property
    def is_rolled_back(self) -> bool:
        return self._state is TransactionState.ROLLED_BACK

    def _finish(self, state: TransactionState) -> None:
        self._state = state
