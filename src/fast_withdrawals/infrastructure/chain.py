"""web3.py adapters for the L1 token contracts and the L1 messenger.

Web3TokenGateway signs and sends ERC20 transferFrom / transfer transactions
from the market maker's account. Each transfer is first simulated with
eth_call so a token that reports failure through its return value is caught
before any gas is spent. A reverted receipt reports failure too. A transaction
that was broadcast but never confirmed raises TransferOutcomeUnknown carrying
its hash.

Web3MessengerOracle reads successfulMessages(bytes32) from the messenger.
Reads are retried on transient connection errors; transactions never are.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from eth_utils import encode_hex
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from fast_withdrawals.domain.exceptions import TransferFailed, TransferOutcomeUnknown
from fast_withdrawals.domain.messages import normalize_address
from fast_withdrawals.logging_config import get_logger

if TYPE_CHECKING:
    from eth_account.signers.local import LocalAccount
    from web3 import AsyncWeb3

    from fast_withdrawals.config import Settings
    from fast_withdrawals.domain.protocols import MessageRelayOracle, TokenGateway

logger = get_logger(__name__)

ERC20_ABI = [
    {
        "name": "transfer",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "transferFrom",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "from", "type": "address"},
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

MESSENGER_ABI = [
    {
        "name": "successfulMessages",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "", "type": "bytes32"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
]

# ConnectionError and TimeoutError are both OSError subclasses
_TRANSIENT_ERRORS = (OSError,)


class Web3TokenGateway:
    """TokenGateway backed by a live L1 node."""

    def __init__(self, w3: AsyncWeb3, account: LocalAccount, receipt_timeout: int = 120) -> None:
        self._w3 = w3
        self._account = account
        self._receipt_timeout = receipt_timeout

    @property
    def address(self) -> str:
        return self._account.address

    def _erc20(self, token: str):  # noqa: ANN202
        return self._w3.eth.contract(address=normalize_address(token), abi=ERC20_ABI)

    async def transfer_from(
        self,
        token: str,
        spender: str,
        source: str,
        destination: str,
        amount: int,
    ) -> bool:
        if normalize_address(spender) != self.address:
            reason = f"can only spend as {self.address}, not {spender}"
            raise TransferFailed(token, destination, amount, reason=reason)
        fn = self._erc20(token).functions.transferFrom(
            normalize_address(source), normalize_address(destination), amount
        )
        return await self._send(fn, token=token, destination=destination, amount=amount)

    async def transfer(self, token: str, sender: str, destination: str, amount: int) -> bool:
        if normalize_address(sender) != self.address:
            reason = f"can only send as {self.address}, not {sender}"
            raise TransferFailed(token, destination, amount, reason=reason)
        fn = self._erc20(token).functions.transfer(normalize_address(destination), amount)
        return await self._send(fn, token=token, destination=destination, amount=amount)

    @retry(
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        reraise=True,
    )
    async def balance_of(self, token: str, account: str) -> int:
        return await self._erc20(token).functions.balanceOf(normalize_address(account)).call()

    async def _send(  # noqa: ANN001
        self, fn, *, token: str, destination: str, amount: int
    ) -> bool:
        """Simulate, sign and broadcast a transfer, then wait for its receipt.

        Nothing has left this process until `send_raw_transaction`, so errors
        before it are TransferFailed. From the broadcast on, an error means the
        transfer may still be mined and is raised as TransferOutcomeUnknown.
        """
        sender = self.address
        log_fields = {"token": token, "destination": destination, "amount": str(amount)}
        try:
            if not await fn.call({"from": sender}):
                logger.warning("chain.transfer_rejected", **log_fields)
                return False
            tx = await fn.build_transaction(
                {
                    "from": sender,
                    "nonce": await self._w3.eth.get_transaction_count(sender, "pending"),
                }
            )
            signed = self._account.sign_transaction(tx)
        except Exception as exc:
            raise TransferFailed(token, destination, amount, reason=str(exc)) from exc

        tx_hash = encode_hex(signed.hash)
        try:
            await self._w3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                signed.hash, timeout=self._receipt_timeout
            )
        except Exception as exc:
            logger.error(
                "chain.transfer_unconfirmed", tx_hash=tx_hash, error=str(exc), **log_fields
            )
            raise TransferOutcomeUnknown(
                token, destination, amount, reason=str(exc) or type(exc).__name__, tx_hash=tx_hash
            ) from exc

        ok = receipt["status"] == 1
        logger.info("chain.transfer_mined", tx_hash=tx_hash, success=ok, **log_fields)
        return ok


class Web3MessengerOracle:
    """MessageRelayOracle backed by the L1 messenger contract."""

    def __init__(self, w3: AsyncWeb3, messenger_address: str) -> None:
        self._contract = w3.eth.contract(
            address=normalize_address(messenger_address), abi=MESSENGER_ABI
        )

    @retry(
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        reraise=True,
    )
    async def is_relayed(self, message_hash: bytes) -> bool:
        return bool(await self._contract.functions.successfulMessages(message_hash).call())


def build_collaborators(settings: Settings) -> tuple[TokenGateway, MessageRelayOracle]:
    """Create the token gateway and messenger oracle for the configured mode."""
    if settings.simulate_chain:
        from fast_withdrawals.infrastructure.simulated import (
            InMemoryMessenger,
            InMemoryTokenLedger,
        )

        logger.info("chain.simulated")
        return InMemoryTokenLedger(), InMemoryMessenger()

    from eth_account import Account
    from web3 import AsyncHTTPProvider, AsyncWeb3

    if not settings.market_maker_private_key:
        raise ValueError("market_maker_private_key is required when simulate_chain is off")

    w3 = AsyncWeb3(
        AsyncHTTPProvider(
            settings.l1_rpc_url,
            request_kwargs={"timeout": settings.rpc_timeout_seconds},
        )
    )
    account = Account.from_key(settings.market_maker_private_key)
    if account.address != settings.market_maker_address:
        raise ValueError(
            f"private key controls {account.address}, "
            f"but market_maker_address is {settings.market_maker_address}"
        )
    logger.info(
        "chain.connected",
        rpc_url=settings.l1_rpc_url,
        market_maker=account.address,
        messenger=settings.messenger_address,
    )
    return (
        Web3TokenGateway(w3, account),
        Web3MessengerOracle(w3, settings.messenger_address),
    )
