"""Tests for the token registry.

Runs against an in-memory SQLite database within one transaction per test.
"""

from __future__ import annotations

import pytest
from conftest import DEPOSIT_BOX, L2_MIRROR, OWNER, STRANGER, TOKEN

from fast_withdrawals.domain.exceptions import InvalidAddress, Unauthorized
from fast_withdrawals.domain.messages import ZERO_ADDRESS
from fast_withdrawals.infrastructure.database.repositories import EventRepository
from fast_withdrawals.services.registry_service import RegistryEntry, RegistryService


class TestRegistration:
    @pytest.mark.asyncio
    async def test_unregistered_token_reads_zero(self, session) -> None:
        entry = await RegistryService(session, OWNER).get_entry(TOKEN)
        assert entry == RegistryEntry(token=TOKEN)
        assert entry.deposit_box == ZERO_ADDRESS
        assert entry.l2_mirror == ZERO_ADDRESS

    @pytest.mark.asyncio
    async def test_register_both_addresses(self, session) -> None:
        registry = RegistryService(session, OWNER)
        await registry.register_deposit_box(OWNER, TOKEN, DEPOSIT_BOX)
        entry = await registry.register_mirror(OWNER, TOKEN, L2_MIRROR)

        assert entry.deposit_box == DEPOSIT_BOX
        assert entry.l2_mirror == L2_MIRROR
        assert await registry.get_entry(TOKEN) == entry

    @pytest.mark.asyncio
    async def test_deposit_box_alone_leaves_mirror_unset(self, session) -> None:
        registry = RegistryService(session, OWNER)
        entry = await registry.register_deposit_box(OWNER, TOKEN, DEPOSIT_BOX)
        assert entry.l2_mirror == ZERO_ADDRESS

    @pytest.mark.asyncio
    async def test_overwrite_is_audited(self, session) -> None:
        registry = RegistryService(session, OWNER)
        await registry.register_deposit_box(OWNER, TOKEN, DEPOSIT_BOX)
        await registry.register_deposit_box(OWNER, TOKEN, L2_MIRROR)

        assert (await registry.get_entry(TOKEN)).deposit_box == L2_MIRROR

        events = await EventRepository(session).get_by_subject(TOKEN)
        assert [e.event_type for e in events] == [
            "DEPOSIT_BOX_REGISTERED",
            "DEPOSIT_BOX_REGISTERED",
        ]
        assert events[-1].metadata_json == {"previous": DEPOSIT_BOX, "current": L2_MIRROR}

    @pytest.mark.asyncio
    async def test_list_entries(self, session) -> None:
        registry = RegistryService(session, OWNER)
        assert await registry.list_entries() == []

        await registry.register_mirror(OWNER, TOKEN, L2_MIRROR)
        entries = await registry.list_entries()
        assert [e.token for e in entries] == [TOKEN]


class TestAccessControl:
    @pytest.mark.asyncio
    async def test_non_owner_cannot_register_deposit_box(self, session) -> None:
        registry = RegistryService(session, OWNER)
        with pytest.raises(Unauthorized) as exc_info:
            await registry.register_deposit_box(STRANGER, TOKEN, DEPOSIT_BOX)
        assert exc_info.value.operation == "registerDepositBox"
        assert (await registry.get_entry(TOKEN)).deposit_box == ZERO_ADDRESS

    @pytest.mark.asyncio
    async def test_non_owner_cannot_register_mirror(self, session) -> None:
        registry = RegistryService(session, OWNER)
        with pytest.raises(Unauthorized) as exc_info:
            await registry.register_mirror(STRANGER, TOKEN, L2_MIRROR)
        assert exc_info.value.code == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_malformed_address_rejected(self, session) -> None:
        registry = RegistryService(session, OWNER)
        with pytest.raises(InvalidAddress):
            await registry.register_deposit_box(OWNER, TOKEN, "0xdead")
