from __future__ import annotations

import logging
from typing import Tuple

from tether.model import Member
from tether.repository import MemberRepository
from tether.transaction import TransactionCoordinator

logger = logging.getLogger(__name__)


class TransferService:
    """Moves money between two members as a single unit of work"""

    def __init__(
        self, coordinator: TransactionCoordinator, repository: MemberRepository
    ) -> None:
        self.coordinator = coordinator
        self.repository = repository

    async def transfer(
        self, from_id: str, to_id: str, amount: int
    ) -> Tuple[Member, Member]:
        """Debit `from_id` and credit `to_id`. Either both balances change
        or neither does.

        Raises:
            ValueError: For a non-positive amount or identical keys
            RecordNotFound: When either member does not exist

        Returns:
            Tuple[Member, Member]: Both members with their new balances
        """
        if amount <= 0:
            raise ValueError(f"Transfer amount must be positive: {amount}")
        if from_id == to_id:
            raise ValueError("Cannot transfer to the same member")

        async with self.coordinator.transaction() as uow:
            source = await self.repository.read_by_key(from_id)
            target = await self.repository.read_by_key(to_id)
            await self.repository.update_balance(
                from_id, source.money - amount
            )
            await self.repository.update_balance(
                to_id, target.money + amount
            )
            logger.debug(
                "Transfer of %d from %s to %s in %s",
                amount,
                from_id,
                to_id,
                uow.transaction_id,
            )
        return (
            Member(from_id, source.money - amount),
            Member(to_id, target.money + amount),
        )
