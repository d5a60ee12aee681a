from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Hashable, Optional
from uuid import uuid4

from tether.base.provider import BaseProvider
from tether.exception import (
    ProgrammingUsageError,
    TetherError,
    TransactionTimeoutError,
    UnexpectedRollbackError,
)
from tether.registry import (
    BoundConnection,
    ConnectionRegistry,
    current_context,
)
from tether.translator import ErrorTranslator

from .interfaces import TransactionState, UnitOfWork

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300.0


class TransactionCoordinator:
    """Opens and closes units of work.

    `begin` acquires a connection from the provider, disables autocommit and
    binds it to the calling task in the registry. `commit` and `rollback`
    always undo all three steps, in reverse, even when the driver fails.

    Args:
        pool (BaseProvider): Source of connections
        registry (ConnectionRegistry): Where bindings are recorded
        translator (ErrorTranslator, optional): Defaults to the one paired
            with the provider.
        timeout (float, optional): Maximum lifetime of a unit of work in
            seconds. Committing after it has elapsed rolls back instead.
            Defaults to 300.
        acquire_timeout (float, optional): Seconds to wait for a
            connection. Defaults to the provider setting.
        reentrant (bool, optional): Whether `begin` inside an open unit of
            work joins it instead of failing. Defaults to `False`.
    """

    def __init__(
        self,
        pool: BaseProvider,
        registry: ConnectionRegistry,
        translator: Optional[ErrorTranslator] = None,
        timeout: Optional[float] = None,
        acquire_timeout: Optional[float] = None,
        reentrant: bool = False,
    ) -> None:
        self.pool = pool
        self.registry = registry
        self.translator = translator or pool.translator()
        self.timeout = DEFAULT_TIMEOUT if timeout is None else timeout
        self.acquire_timeout = acquire_timeout
        self.reentrant = reentrant

    async def begin(self, context: Optional[Hashable] = None) -> UnitOfWork:
        """Open a unit of work for the calling task

        Args:
            context (Hashable, optional): Explicit execution context key.
                Defaults to the running task.

        Raises:
            ProgrammingUsageError: If a unit of work is already open for the
                context and reentrancy is disabled
            DataAccessError: If no connection could be prepared

        Returns:
            UnitOfWork: The handle to pass to `commit` or `rollback`
        """
        key = current_context() if context is None else context
        entry = self.registry.entry(key)
        if entry is not None:
            if not self.reentrant:
                raise ProgrammingUsageError(
                    f"Transaction {entry.transaction_id} is already open "
                    f"for {key!r}"
                )
            depth = self.registry.enter(key)
            logger.debug(
                "Joined transaction %s at depth %d",
                entry.transaction_id,
                depth,
            )
            return UnitOfWork(
                entry.transaction_id, key, entry.connection, depth
            )

        transaction_id = f"txn_{uuid4().hex[:8]}"
        try:
            conn = await self.pool.acquire(timeout=self.acquire_timeout)
        except Exception as e:
            raise self.translator.translate("begin", "", e) from e

        try:
            await self.pool.set_autocommit(conn, False)
            self.registry.bind(conn, key, transaction_id)
        except BaseException as e:
            await self._release(conn, transaction_id)
            if isinstance(e, Exception) and not isinstance(e, TetherError):
                raise self.translator.translate("begin", "BEGIN", e) from e
            raise

        logger.info("Transaction %s started", transaction_id)
        return UnitOfWork(transaction_id, key, conn)

    async def commit(self, uow: UnitOfWork) -> None:
        """Commit the unit of work and return its connection

        Raises:
            ProgrammingUsageError: The handle is finished, or a nested
                level is still open
            UnexpectedRollbackError: A nested level already rolled back
            TransactionTimeoutError: The unit of work outlived `timeout`
            DataAccessError: The driver refused to commit
        """
        self._check_active(uow, "commit")
        if not uow.outermost:
            self.registry.leave(uow.context)
            uow._finish(TransactionState.COMMITTED)
            logger.debug(
                "Commit of %s deferred to the outermost level",
                uow.transaction_id,
            )
            return

        entry = self._check_innermost(uow, "commit")
        try:
            if entry is not None and entry.rollback_only:
                await self._issue_rollback(uow, "commit")
                raise UnexpectedRollbackError(
                    f"Transaction {uow.transaction_id} was marked "
                    "rollback-only by a nested rollback",
                    operation="commit",
                )

            if uow.elapsed > self.timeout:
                logger.warning(
                    "Transaction %s timed out, rolling back",
                    uow.transaction_id,
                )
                await self._issue_rollback(uow, "commit")
                raise TransactionTimeoutError(
                    f"Transaction timed out after {self.timeout} seconds",
                    operation="commit",
                )

            try:
                await self.pool.commit(uow.connection)
            except Exception as e:
                logger.error(
                    "Commit failed for %s, attempting rollback: %s",
                    uow.transaction_id,
                    e,
                )
                try:
                    await self.pool.rollback(uow.connection)
                except Exception as rollback_error:
                    logger.critical(
                        "Rollback after failed commit also failed: %s",
                        rollback_error,
                    )
                uow._finish(TransactionState.ROLLED_BACK)
                raise self.translator.translate("commit", "COMMIT", e) from e

            uow._finish(TransactionState.COMMITTED)
            logger.info(
                "Transaction %s committed successfully", uow.transaction_id
            )
        finally:
            await self._teardown(uow)

    async def rollback(self, uow: UnitOfWork) -> None:
        """Roll back the unit of work and return its connection. A nested
        level only marks the whole unit of work rollback-only."""
        self._check_active(uow, "rollback")
        if not uow.outermost:
            self.registry.leave(uow.context, rollback_only=True)
            uow._finish(TransactionState.ROLLED_BACK)
            logger.info(
                "Transaction %s marked rollback-only at depth %d",
                uow.transaction_id,
                uow.depth,
            )
            return

        self._check_innermost(uow, "rollback")
        try:
            await self._issue_rollback(uow, "rollback")
            logger.info(
                "Transaction %s rolled back successfully", uow.transaction_id
            )
        finally:
            await self._teardown(uow)

    @asynccontextmanager
    async def transaction(
        self, context: Optional[Hashable] = None
    ) -> AsyncIterator[UnitOfWork]:
        """Scoped unit of work: commits when the block finishes, rolls back
        when anything escapes it, cancellation included.

        Example:

        ```python
        async with coordinator.transaction():
            await repository.create(Member("a", 100))
            await repository.update_balance("a", 50)
        ```
        """
        uow = await self.begin(context)
        try:
            yield uow
        except BaseException:
            if uow.is_active:
                try:
                    await self.rollback(uow)
                except Exception as e:
                    logger.error(
                        "Error in rollback on exit for %s: %s",
                        uow.transaction_id,
                        e,
                    )
            raise
        else:
            if uow.is_active:
                await self.commit(uow)

    async def _issue_rollback(self, uow: UnitOfWork, operation: str) -> None:
        try:
            await self.pool.rollback(uow.connection)
        except Exception as e:
            logger.critical(
                "Rollback failed for %s: %s", uow.transaction_id, e
            )
            raise self.translator.translate(operation, "ROLLBACK", e) from e
        finally:
            uow._finish(TransactionState.ROLLED_BACK)

    async def _teardown(self, uow: UnitOfWork) -> None:
        try:
            await self.pool.set_autocommit(uow.connection, True)
        except Exception as e:
            logger.warning(
                "Could not restore autocommit for %s: %s",
                uow.transaction_id,
                e,
            )
        finally:
            try:
                self.registry.unbind(uow.context)
            finally:
                await self._release(uow.connection, uow.transaction_id)

    async def _release(self, conn: Any, transaction_id: str) -> None:
        try:
            await self.pool.release(conn)
        except Exception as e:
            logger.error(
                "Error releasing connection for %s: %s", transaction_id, e
            )

    def _check_innermost(
        self, uow: UnitOfWork, operation: str
    ) -> Optional[BoundConnection]:
        entry = self.registry.entry(uow.context)
        if entry is not None and entry.depth > 1:
            raise ProgrammingUsageError(
                f"Cannot {operation} transaction {uow.transaction_id}: "
                f"{entry.depth - 1} nested level(s) still open"
            )
        return entry

    @staticmethod
    def _check_active(uow: UnitOfWork, operation: str) -> None:
        if not uow.is_active:
            raise ProgrammingUsageError(
                f"Cannot {operation} transaction {uow.transaction_id}: "
                f"already {uow.state.value}"
            )
