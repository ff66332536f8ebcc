"""Verification Service — has the withdrawal's cross-domain message been relayed?

Coordinates between:
    - RegistryRepository (deposit box and L2 mirror of the token)
    - domain/messages.py (bit-exact envelope reconstruction)
    - MessageRelayOracle (the messenger's record of relayed hashes)

Read-only: nothing here writes to the database.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fast_withdrawals.domain.messages import ZERO_ADDRESS, CrossDomainMessage, normalize_address
from fast_withdrawals.infrastructure.database.repositories import RegistryRepository
from fast_withdrawals.logging_config import get_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from fast_withdrawals.domain.protocols import MessageRelayOracle

logger = get_logger(__name__)


class VerificationService:
    """Rebuilds withdrawal messages and checks them against the messenger."""

    def __init__(self, session: AsyncSession, oracle: MessageRelayOracle) -> None:
        self._registry_repo = RegistryRepository(session)
        self._oracle = oracle

    async def build_message(
        self,
        token: str,
        beneficiary: str,
        amount: int,
        nonce: int,
    ) -> CrossDomainMessage:
        """Reconstruct the message the token's L2 mirror sent for this withdrawal.

        Unregistered tokens use the zero address for both ends; the resulting
        hash will simply never be found.
        """
        registration = await self._registry_repo.get(normalize_address(token))
        deposit_box = registration.deposit_box if registration else ZERO_ADDRESS
        l2_mirror = registration.l2_mirror if registration else ZERO_ADDRESS
        return CrossDomainMessage.for_withdrawal(
            deposit_box=deposit_box,
            l2_mirror=l2_mirror,
            beneficiary=beneficiary,
            amount=amount,
            nonce=nonce,
        )

    async def is_relayed(self, message: CrossDomainMessage) -> bool:
        relayed = await self._oracle.is_relayed(message.hash)
        logger.debug(
            "verification.checked",
            message_hash="0x" + message.hash.hex(),
            relayed=relayed,
        )
        return relayed

    async def is_successful_msg(
        self,
        token: str,
        beneficiary: str,
        amount: int,
        nonce: int,
    ) -> bool:
        """Return the messenger's answer for the reconstructed message verbatim."""
        message = await self.build_message(token, beneficiary, amount, nonce)
        return await self.is_relayed(message)
