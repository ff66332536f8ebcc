"""Registry Service — owner-gated token -> (deposit box, L2 mirror) mapping.

The settlement engine needs both addresses to rebuild the cross-domain message
of a withdrawal. Entries are overwritten in place; the previous value survives
only in the audit log.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from fast_withdrawals.domain.enums import EventType
from fast_withdrawals.domain.exceptions import Unauthorized
from fast_withdrawals.domain.messages import ZERO_ADDRESS, normalize_address
from fast_withdrawals.infrastructure.database.repositories import (
    EventRepository,
    RegistryRepository,
)
from fast_withdrawals.logging_config import get_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass(frozen=True)
class RegistryEntry:
    """Registry view of one token. Unset addresses read as the zero address."""

    token: str
    deposit_box: str = ZERO_ADDRESS
    l2_mirror: str = ZERO_ADDRESS

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "deposit_box": self.deposit_box,
            "l2_mirror": self.l2_mirror,
        }


class RegistryService:
    """Reads and owner-only writes of the token registry."""

    def __init__(self, session: AsyncSession, owner: str) -> None:
        self._owner = normalize_address(owner)
        self._registry_repo = RegistryRepository(session)
        self._event_repo = EventRepository(session)

    async def register_deposit_box(self, caller: str, token: str, box: str) -> RegistryEntry:
        """Point `token` at the L1 contract custodying its bridged deposits."""
        caller = self._require_owner(caller, "registerDepositBox")
        token, box = normalize_address(token), normalize_address(box)

        registration = await self._registry_repo.get_or_create(token)
        previous = registration.deposit_box
        registration.deposit_box = box

        await self._event_repo.record(
            subject=token,
            event_type=EventType.DEPOSIT_BOX_REGISTERED,
            actor=caller,
            metadata={"previous": previous, "current": box},
        )
        logger.info("registry.deposit_box_registered", token=token, deposit_box=box)
        return self._to_entry(registration)

    async def register_mirror(self, caller: str, token: str, l2_token: str) -> RegistryEntry:
        """Point `token` at the L2 contract that mirrors it."""
        caller = self._require_owner(caller, "registerMirror")
        token, l2_token = normalize_address(token), normalize_address(l2_token)

        registration = await self._registry_repo.get_or_create(token)
        previous = registration.l2_mirror
        registration.l2_mirror = l2_token

        await self._event_repo.record(
            subject=token,
            event_type=EventType.MIRROR_REGISTERED,
            actor=caller,
            metadata={"previous": previous, "current": l2_token},
        )
        logger.info("registry.mirror_registered", token=token, l2_mirror=l2_token)
        return self._to_entry(registration)

    async def get_entry(self, token: str) -> RegistryEntry:
        token = normalize_address(token)
        registration = await self._registry_repo.get(token)
        if registration is None:
            return RegistryEntry(token=token)
        return self._to_entry(registration)

    async def list_entries(self) -> list[RegistryEntry]:
        return [self._to_entry(r) for r in await self._registry_repo.list_all()]

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _require_owner(self, caller: str, operation: str) -> str:
        caller = normalize_address(caller)
        if caller != self._owner:
            raise Unauthorized(caller, operation)
        return caller

    @staticmethod
    def _to_entry(registration) -> RegistryEntry:  # noqa: ANN001
        return RegistryEntry(
            token=registration.token,
            deposit_box=registration.deposit_box,
            l2_mirror=registration.l2_mirror,
        )
