from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Hashable, Optional

from tether.base.provider import BaseProvider
from tether.convert import convert_sql_params
from tether.exception import (
    ConstraintViolationError,
    RecordNotFound,
    TetherError,
)
from tether.model import Member
from tether.registry import ConnectionRegistry
from tether.translator import ErrorTranslator

logger = logging.getLogger(__name__)


class MemberRepository:
    """Create, read, update and delete `Member` records.

    Every operation first asks the registry for a connection bound to the
    caller. When a unit of work is open that connection is used and left
    alone; otherwise the operation acquires its own connection from the
    provider and releases it before returning (autonomous mode). Driver
    failures leave here only as translated `DataAccessError` subclasses.

    Args:
        pool (BaseProvider): Source of connections for autonomous mode
        registry (ConnectionRegistry): Where open units of work are bound
        translator (ErrorTranslator, optional): Defaults to the one paired
            with the provider.
        allow_negative_balance (bool, optional): Whether a balance below
            zero may be stored. Defaults to `True`.
    """

    INSERT = (
        "INSERT INTO member (member_id, money) VALUES ($member_id, $money)"
    )
    SELECT = "SELECT member_id, money FROM member WHERE member_id = $member_id"
    UPDATE = "UPDATE member SET money = $money WHERE member_id = $member_id"
    DELETE = "DELETE FROM member WHERE member_id = $member_id"

    def __init__(
        self,
        pool: BaseProvider,
        registry: ConnectionRegistry,
        translator: Optional[ErrorTranslator] = None,
        allow_negative_balance: bool = True,
    ) -> None:
        self.pool = pool
        self.registry = registry
        self.translator = translator or pool.translator()
        self.allow_negative_balance = allow_negative_balance

    async def create(
        self, member: Member, *, context: Optional[Hashable] = None
    ) -> Member:
        self._check_balance("create", self.INSERT, member.money)
        await self._run_sql(
            "create",
            self.INSERT,
            {"member_id": member.member_id, "money": member.money},
            context=context,
        )
        return member

    async def read_by_key(
        self, member_id: str, *, context: Optional[Hashable] = None
    ) -> Member:
        """Fetch one member

        Raises:
            RecordNotFound: When no row has the key
        """
        row = await self._run_sql(
            "read_by_key",
            self.SELECT,
            {"member_id": member_id},
            fetch=True,
            context=context,
        )
        if row is None:
            raise RecordNotFound(
                f"Member not found: member_id={member_id}", key=member_id
            )
        return Member(**row)

    async def update_balance(
        self,
        member_id: str,
        money: int,
        *,
        context: Optional[Hashable] = None,
    ) -> int:
        """Set the balance of a member

        Returns:
            int: The number of rows changed, 0 when the key does not exist
        """
        self._check_balance("update_balance", self.UPDATE, money)
        count = await self._run_sql(
            "update_balance",
            self.UPDATE,
            {"member_id": member_id, "money": money},
            context=context,
        )
        logger.info("update_balance member_id=%s rows=%s", member_id, count)
        return count

    async def delete(
        self, member_id: str, *, context: Optional[Hashable] = None
    ) -> int:
        return await self._run_sql(
            "delete", self.DELETE, {"member_id": member_id}, context=context
        )

    async def _run_sql(
        self,
        operation: str,
        statement: str,
        params: Dict[str, Any],
        fetch: bool = False,
        context: Optional[Hashable] = None,
    ):
        query = convert_sql_params(
            statement, self.pool.POSITIONAL_SUB, self.pool.KEYWORD_SUB
        )
        async with self._connection(operation, context) as conn:
            logger.debug("%s executing: %s", operation, query)
            try:
                cursor = await self.pool.execute(conn, query, params)
                try:
                    if fetch:
                        return await self.pool.fetchone(cursor)
                    return cursor.rowcount
                finally:
                    await self.pool.close_cursor(cursor)
            except TetherError:
                raise
            except Exception as e:
                raise self.translator.translate(operation, statement, e) from e

    @asynccontextmanager
    async def _connection(
        self, operation: str, context: Optional[Hashable]
    ) -> AsyncIterator[Any]:
        bound = self.registry.lookup(context)
        if bound is not None:
            yield bound
            return

        try:
            conn = await self.pool.acquire()
        except Exception as e:
            raise self.translator.translate(operation, "", e) from e
        logger.debug("%s running in autonomous mode", operation)
        try:
            yield conn
        except BaseException:
            try:
                await self.pool.release(conn)
            except Exception as e:
                logger.error(
                    "Error releasing connection after failed %s: %s",
                    operation,
                    e,
                )
            raise
        try:
            await self.pool.release(conn)
        except Exception as e:
            raise self.translator.translate(operation, "", e) from e

    def _check_balance(self, operation: str, statement: str, money: int):
        if money < 0 and not self.allow_negative_balance:
            raise ConstraintViolationError(
                f"Negative balance {money} is not allowed",
                operation=operation,
                statement=statement,
            )
