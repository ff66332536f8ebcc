"""Repository classes for database access.

Repositories encapsulate all SQL queries and provide a clean interface
to the service layer. They accept an AsyncSession and never manage
their own transactions (that's the caller's responsibility).
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select, update

from fast_withdrawals.domain.messages import ZERO_ADDRESS
from fast_withdrawals.infrastructure.database.orm_models import (
    LedgerEvent,
    TokenRegistration,
    WithdrawalEntry,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from fast_withdrawals.domain.enums import EventType, WithdrawalStatus


class RegistryRepository:
    """Data access for the token registry."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, token: str) -> TokenRegistration | None:
        """Fetch the registration of a token, if any."""
        return await self._session.get(TokenRegistration, token)

    async def get_or_create(self, token: str) -> TokenRegistration:
        """Fetch a registration, inserting an empty one on first use."""
        registration = await self.get(token)
        if registration is None:
            registration = TokenRegistration(
                token=token, deposit_box=ZERO_ADDRESS, l2_mirror=ZERO_ADDRESS
            )
            self._session.add(registration)
            await self._session.flush()
        return registration

    async def list_all(self) -> list[TokenRegistration]:
        result = await self._session.execute(
            select(TokenRegistration).order_by(TokenRegistration.token.asc())
        )
        return list(result.scalars().all())


class LedgerRepository:
    """Data access for the withdrawal ledger.

    Rows are only ever written through `add` and `compare_and_set`, so two
    sessions racing on one key cannot both move it out of the same status.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, withdrawal_key: str) -> WithdrawalEntry | None:
        """Fetch a ledger row by key. None means the key is still UNSET."""
        return await self._session.get(WithdrawalEntry, withdrawal_key)

    async def get_for_update(self, withdrawal_key: str) -> WithdrawalEntry | None:
        """Fetch a ledger row and lock it until the transaction ends.

        PostgreSQL takes a row lock. SQLite ignores FOR UPDATE and relies on
        `compare_and_set` alone.
        """
        result = await self._session.execute(
            select(WithdrawalEntry)
            .where(WithdrawalEntry.withdrawal_key == withdrawal_key)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def add(
        self,
        withdrawal_key: str,
        token: str,
        beneficiary: str,
        amount: int,
        status: WithdrawalStatus,
        nonce: int | None = None,
    ) -> WithdrawalEntry:
        """Insert the first row of a key.

        Raises IntegrityError if another transaction inserted the key first.
        """
        entry = WithdrawalEntry(
            withdrawal_key=withdrawal_key,
            token=token,
            beneficiary=beneficiary,
            amount=str(amount),
            nonce=str(nonce) if nonce is not None else None,
            status=status.value,
        )
        self._session.add(entry)
        await self._session.flush()
        return entry

    async def compare_and_set(
        self,
        entry: WithdrawalEntry,
        expected: WithdrawalStatus,
        new_status: WithdrawalStatus,
        nonce: int | None = None,
    ) -> bool:
        """Move a row from `expected` to `new_status` (call AFTER state machine validation).

        Returns False, and leaves the row alone, when its stored status is no
        longer `expected`. The entry is refreshed from the database either way.
        """
        values: dict = {"status": new_status.value, "updated_at": datetime.now(UTC)}
        if nonce is not None and entry.nonce is None:
            values["nonce"] = str(nonce)
        result = await self._session.execute(
            update(WithdrawalEntry)
            .where(
                WithdrawalEntry.withdrawal_key == entry.withdrawal_key,
                WithdrawalEntry.status == expected.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self._session.refresh(entry)
        return result.rowcount == 1

    async def get_by_beneficiary(self, beneficiary: str) -> list[WithdrawalEntry]:
        """Fetch all ledger rows of a beneficiary, newest first."""
        result = await self._session.execute(
            select(WithdrawalEntry)
            .where(WithdrawalEntry.beneficiary == beneficiary)
            .order_by(WithdrawalEntry.created_at.desc())
        )
        return list(result.scalars().all())


class EventRepository:
    """Data access for the append-only audit event log."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(
        self,
        subject: str,
        event_type: EventType,
        actor: str,
        old_status: WithdrawalStatus | None = None,
        new_status: WithdrawalStatus | None = None,
        metadata: dict | None = None,
    ) -> LedgerEvent:
        """Append a new audit event. This is the ONLY write operation allowed."""
        evt = LedgerEvent(
            subject=subject,
            event_type=event_type.value,
            old_status=old_status.value if old_status else None,
            new_status=new_status.value if new_status else None,
            actor=actor,
            metadata_json=metadata,
        )
        self._session.add(evt)
        await self._session.flush()
        return evt

    async def get_by_subject(self, subject: str) -> list[LedgerEvent]:
        """Fetch all events for a withdrawal key or token in chronological order."""
        result = await self._session.execute(
            select(LedgerEvent)
            .where(LedgerEvent.subject == subject)
            .order_by(LedgerEvent.created_at.asc())
        )
        return list(result.scalars().all())
