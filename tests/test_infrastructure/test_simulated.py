"""Tests for the in-memory token ledger and messenger."""

from __future__ import annotations

import pytest
from conftest import DESK, INVENTORY, INVENTORY_FUNDS, TOKEN, USER

from fast_withdrawals.domain.messages import UINT256_MAX, CrossDomainMessage
from fast_withdrawals.domain.protocols import MessageRelayOracle, TokenGateway
from fast_withdrawals.infrastructure.simulated import InMemoryMessenger, InMemoryTokenLedger


class TestProtocols:
    def test_ledger_is_token_gateway(self, tokens) -> None:
        assert isinstance(tokens, TokenGateway)

    def test_messenger_is_oracle(self, messenger) -> None:
        assert isinstance(messenger, MessageRelayOracle)


class TestTransferFrom:
    @pytest.mark.asyncio
    async def test_infinite_allowance_is_not_spent(self, tokens) -> None:
        assert await tokens.transfer_from(TOKEN, DESK, INVENTORY, USER, 40)
        assert tokens.allowance(TOKEN, INVENTORY, DESK) == UINT256_MAX
        assert await tokens.balance_of(TOKEN, USER) == 40

    @pytest.mark.asyncio
    async def test_finite_allowance_is_spent(self, tokens) -> None:
        tokens.approve(TOKEN, INVENTORY, DESK, 50)
        assert await tokens.transfer_from(TOKEN, DESK, INVENTORY, USER, 30)
        assert tokens.allowance(TOKEN, INVENTORY, DESK) == 20
        assert not await tokens.transfer_from(TOKEN, DESK, INVENTORY, USER, 30)

    @pytest.mark.asyncio
    async def test_unapproved_spender_fails(self, tokens) -> None:
        assert not await tokens.transfer_from(TOKEN, USER, INVENTORY, USER, 1)
        assert await tokens.balance_of(TOKEN, INVENTORY) == INVENTORY_FUNDS

    @pytest.mark.asyncio
    async def test_insufficient_balance_keeps_allowance(self, tokens) -> None:
        tokens.approve(TOKEN, INVENTORY, DESK, INVENTORY_FUNDS * 2)
        assert not await tokens.transfer_from(TOKEN, DESK, INVENTORY, USER, INVENTORY_FUNDS + 1)
        assert tokens.allowance(TOKEN, INVENTORY, DESK) == INVENTORY_FUNDS * 2


class TestTransfer:
    @pytest.mark.asyncio
    async def test_moves_balance(self, tokens) -> None:
        tokens.mint(TOKEN, DESK, 10)
        assert await tokens.transfer(TOKEN, DESK, USER, 10)
        assert await tokens.balance_of(TOKEN, DESK) == 0
        assert await tokens.balance_of(TOKEN, USER) == 10

    @pytest.mark.asyncio
    async def test_halted_token_fails(self, tokens) -> None:
        tokens.mint(TOKEN, DESK, 10)
        tokens.halt(TOKEN)
        assert not await tokens.transfer(TOKEN, DESK, USER, 10)
        tokens.resume(TOKEN)
        assert await tokens.transfer(TOKEN, DESK, USER, 10)

    @pytest.mark.asyncio
    async def test_hook_runs_before_value_moves(self, tokens) -> None:
        tokens.mint(TOKEN, DESK, 10)
        seen: list[int] = []

        async def record(token: str, source: str, destination: str, amount: int) -> None:
            seen.append(await tokens.balance_of(token, destination))

        tokens.add_hook(record)
        await tokens.transfer(TOKEN, DESK, USER, 10)
        assert seen == [0]


class TestMessenger:
    @pytest.mark.asyncio
    async def test_relay_records_hash(self) -> None:
        messenger = InMemoryMessenger()
        message = CrossDomainMessage.for_withdrawal(TOKEN, DESK, USER, 1, 0)

        assert not await messenger.is_relayed(message.hash)
        assert messenger.relay(message) == message.hash
        assert await messenger.is_relayed(message.hash)

    @pytest.mark.asyncio
    async def test_mark_relayed(self) -> None:
        messenger = InMemoryMessenger()
        messenger.mark_relayed(b"\x01" * 32)
        assert await messenger.is_relayed(bytearray(b"\x01" * 32))
        assert not await messenger.is_relayed(bytes(32))


def test_fresh_ledger_is_empty() -> None:
    ledger = InMemoryTokenLedger()
    assert ledger.allowance(TOKEN, INVENTORY, DESK) == 0
