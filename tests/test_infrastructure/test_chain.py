"""Unit tests for the web3.py adapters.

Uses mocked contracts and a mocked node to test logic without a live chain.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import DESK, INVENTORY, TOKEN, USER
from tenacity import wait_none

from fast_withdrawals.config import Settings
from fast_withdrawals.domain.exceptions import TransferFailed, TransferOutcomeUnknown
from fast_withdrawals.infrastructure.chain import (
    Web3MessengerOracle,
    Web3TokenGateway,
    build_collaborators,
)
from fast_withdrawals.infrastructure.simulated import InMemoryMessenger, InMemoryTokenLedger

TX_HASH = b"\xab" * 32


def _make_fn(call_result: object = True) -> MagicMock:
    fn = MagicMock()
    fn.call = AsyncMock(return_value=call_result)
    fn.build_transaction = AsyncMock(return_value={"to": TOKEN, "data": "0x"})
    return fn


def _make_gateway(fn: MagicMock, receipt_status: int = 1) -> tuple[Web3TokenGateway, MagicMock]:
    contract = MagicMock()
    contract.functions.transfer.return_value = fn
    contract.functions.transferFrom.return_value = fn
    contract.functions.balanceOf.return_value = fn

    w3 = MagicMock()
    w3.eth.contract.return_value = contract
    w3.eth.get_transaction_count = AsyncMock(return_value=7)
    w3.eth.send_raw_transaction = AsyncMock(return_value=TX_HASH)
    w3.eth.wait_for_transaction_receipt = AsyncMock(return_value={"status": receipt_status})

    account = MagicMock()
    account.address = DESK
    account.sign_transaction.return_value = SimpleNamespace(
        raw_transaction=b"signed", hash=TX_HASH
    )
    return Web3TokenGateway(w3, account), w3


class TestWeb3TokenGateway:
    @pytest.mark.asyncio
    async def test_transfer_is_simulated_then_sent(self) -> None:
        fn = _make_fn(True)
        gateway, w3 = _make_gateway(fn)

        assert await gateway.transfer(TOKEN, DESK, USER, 5)

        fn.call.assert_awaited_once_with({"from": DESK})
        tx = fn.build_transaction.await_args.args[0]
        assert tx == {"from": DESK, "nonce": 7}
        w3.eth.send_raw_transaction.assert_awaited_once_with(b"signed")

    @pytest.mark.asyncio
    async def test_false_return_is_not_sent(self) -> None:
        fn = _make_fn(False)
        gateway, w3 = _make_gateway(fn)

        assert not await gateway.transfer_from(TOKEN, DESK, INVENTORY, USER, 5)
        w3.eth.send_raw_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reverted_receipt_is_failure(self) -> None:
        gateway, _ = _make_gateway(_make_fn(True), receipt_status=0)
        assert not await gateway.transfer_from(TOKEN, DESK, INVENTORY, USER, 5)

    @pytest.mark.asyncio
    async def test_only_spends_as_own_account(self) -> None:
        gateway, _ = _make_gateway(_make_fn(True))
        with pytest.raises(TransferFailed, match="can only spend"):
            await gateway.transfer_from(TOKEN, USER, INVENTORY, USER, 5)
        with pytest.raises(TransferFailed, match="can only send"):
            await gateway.transfer(TOKEN, USER, DESK, 5)

    @pytest.mark.asyncio
    async def test_error_before_broadcast_is_transfer_failed(self) -> None:
        fn = _make_fn()
        fn.call = AsyncMock(side_effect=ConnectionError("node down"))
        gateway, w3 = _make_gateway(fn)

        with pytest.raises(TransferFailed, match="node down"):
            await gateway.transfer(TOKEN, DESK, USER, 5)
        w3.eth.send_raw_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_receipt_timeout_is_outcome_unknown(self) -> None:
        gateway, w3 = _make_gateway(_make_fn(True))
        w3.eth.wait_for_transaction_receipt = AsyncMock(side_effect=TimeoutError("no receipt"))

        with pytest.raises(TransferOutcomeUnknown) as exc_info:
            await gateway.transfer_from(TOKEN, DESK, INVENTORY, USER, 5)

        w3.eth.send_raw_transaction.assert_awaited_once_with(b"signed")
        assert exc_info.value.tx_hash == "0x" + "ab" * 32
        assert exc_info.value.code == "TRANSFER_OUTCOME_UNKNOWN"

    @pytest.mark.asyncio
    async def test_broadcast_error_is_outcome_unknown(self) -> None:
        gateway, w3 = _make_gateway(_make_fn(True))
        w3.eth.send_raw_transaction = AsyncMock(side_effect=ConnectionError("reset"))

        with pytest.raises(TransferOutcomeUnknown, match="reset"):
            await gateway.transfer(TOKEN, DESK, USER, 5)
        w3.eth.wait_for_transaction_receipt.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_balance_of(self) -> None:
        gateway, _ = _make_gateway(_make_fn(42))
        assert await gateway.balance_of(TOKEN, USER) == 42


class TestWeb3MessengerOracle:
    def _make_oracle(self, fn: MagicMock) -> Web3MessengerOracle:
        contract = MagicMock()
        contract.functions.successfulMessages.return_value = fn
        w3 = MagicMock()
        w3.eth.contract.return_value = contract
        return Web3MessengerOracle(w3, DESK)

    @pytest.mark.asyncio
    async def test_is_relayed(self) -> None:
        fn = _make_fn(True)
        oracle = self._make_oracle(fn)
        assert await oracle.is_relayed(b"\x01" * 32)
        fn.call.assert_awaited_once_with()

    @pytest.mark.asyncio
    async def test_transient_error_is_retried(self) -> None:
        fn = _make_fn()
        fn.call = AsyncMock(side_effect=[ConnectionError("reset"), False])
        oracle = self._make_oracle(fn)

        is_relayed = Web3MessengerOracle.is_relayed.retry_with(wait=wait_none())
        assert await is_relayed(oracle, b"\x01" * 32) is False
        assert fn.call.await_count == 2

    @pytest.mark.asyncio
    async def test_persistent_error_is_raised(self) -> None:
        fn = _make_fn()
        fn.call = AsyncMock(side_effect=TimeoutError("slow node"))
        oracle = self._make_oracle(fn)

        is_relayed = Web3MessengerOracle.is_relayed.retry_with(wait=wait_none())
        with pytest.raises(TimeoutError):
            await is_relayed(oracle, b"\x01" * 32)
        assert fn.call.await_count == 3

    @pytest.mark.asyncio
    async def test_non_transport_error_is_not_retried(self) -> None:
        fn = _make_fn()
        fn.call = AsyncMock(side_effect=ValueError("bad response"))
        oracle = self._make_oracle(fn)

        is_relayed = Web3MessengerOracle.is_relayed.retry_with(wait=wait_none())
        with pytest.raises(ValueError):
            await is_relayed(oracle, b"\x01" * 32)
        assert fn.call.await_count == 1


class TestBuildCollaborators:
    def test_simulated(self) -> None:
        tokens, oracle = build_collaborators(Settings(simulate_chain=True))
        assert isinstance(tokens, InMemoryTokenLedger)
        assert isinstance(oracle, InMemoryMessenger)

    def test_live_mode_needs_a_key(self) -> None:
        with pytest.raises(ValueError, match="market_maker_private_key"):
            build_collaborators(Settings(simulate_chain=False, market_maker_private_key=""))

    def test_key_must_control_market_maker_address(self) -> None:
        settings = Settings(
            simulate_chain=False,
            market_maker_private_key="0x" + "01" * 32,
            market_maker_address=DESK,
        )
        with pytest.raises(ValueError, match="private key controls"):
            build_collaborators(settings)
