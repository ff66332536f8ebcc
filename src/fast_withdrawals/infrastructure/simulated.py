"""In-memory token ledger and messenger for simulation mode.

Stand-ins for the ERC20 contracts and the L1 messenger when no node is
available (dry runs, the scenario simulation, the test suite). They follow the
on-chain behavior the desk depends on:

    - transfer_from needs an allowance; an allowance of 2**256 - 1 is infinite.
    - failed transfers return False instead of raising, like tokens that
      report failure through their return value.
    - the messenger only knows message hashes, never message contents.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from fast_withdrawals.domain.messages import UINT256_MAX, normalize_address
from fast_withdrawals.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from fast_withdrawals.domain.messages import CrossDomainMessage

    TransferHook = Callable[[str, str, str, int], Awaitable[None]]

logger = get_logger(__name__)


class InMemoryTokenLedger:
    """Balances and allowances for any number of tokens."""

    def __init__(self) -> None:
        self._balances: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._allowances: dict[tuple[str, str, str], int] = defaultdict(int)
        self._halted: set[str] = set()
        self._hooks: list[TransferHook] = []

    # ------------------------------------------------------------------
    # Test and simulation controls
    # ------------------------------------------------------------------

    def mint(self, token: str, account: str, amount: int) -> None:
        token, account = normalize_address(token), normalize_address(account)
        self._balances[token][account] += amount

    def approve(self, token: str, owner: str, spender: str, amount: int) -> None:
        key = (normalize_address(token), normalize_address(owner), normalize_address(spender))
        self._allowances[key] = amount

    def allowance(self, token: str, owner: str, spender: str) -> int:
        key = (normalize_address(token), normalize_address(owner), normalize_address(spender))
        return self._allowances[key]

    def halt(self, token: str) -> None:
        """Make every transfer of `token` report failure."""
        self._halted.add(normalize_address(token))

    def resume(self, token: str) -> None:
        self._halted.discard(normalize_address(token))

    def add_hook(self, hook: TransferHook) -> None:
        """Register a coroutine awaited before each transfer moves value.

        Hooks receive (token, source, destination, amount). They model token
        contracts that call back into their caller during a transfer.
        """
        self._hooks.append(hook)

    # ------------------------------------------------------------------
    # TokenGateway
    # ------------------------------------------------------------------

    async def balance_of(self, token: str, account: str) -> int:
        return self._balances[normalize_address(token)][normalize_address(account)]

    async def transfer_from(
        self,
        token: str,
        spender: str,
        source: str,
        destination: str,
        amount: int,
    ) -> bool:
        token, spender = normalize_address(token), normalize_address(spender)
        source, destination = normalize_address(source), normalize_address(destination)

        key = (token, source, spender)
        allowance = self._allowances[key]
        if allowance < amount:
            logger.debug(
                "token.allowance_exceeded",
                token=token,
                source=source,
                spender=spender,
                allowance=str(allowance),
                amount=str(amount),
            )
            return False

        if not await self._move(token, source, destination, amount):
            return False
        if allowance != UINT256_MAX:
            self._allowances[key] = allowance - amount
        return True

    async def transfer(self, token: str, sender: str, destination: str, amount: int) -> bool:
        return await self._move(
            normalize_address(token),
            normalize_address(sender),
            normalize_address(destination),
            amount,
        )

    async def _move(self, token: str, source: str, destination: str, amount: int) -> bool:
        if token in self._halted:
            logger.debug("token.halted", token=token)
            return False

        for hook in self._hooks:
            await hook(token, source, destination, amount)

        balances = self._balances[token]
        if balances[source] < amount:
            logger.debug(
                "token.insufficient_balance",
                token=token,
                account=source,
                balance=str(balances[source]),
                amount=str(amount),
            )
            return False
        balances[source] -= amount
        balances[destination] += amount
        return True


class InMemoryMessenger:
    """Record of relayed cross-domain messages, keyed by message hash."""

    def __init__(self) -> None:
        self._relayed: set[bytes] = set()

    def mark_relayed(self, message_hash: bytes) -> None:
        self._relayed.add(bytes(message_hash))

    def relay(self, message: CrossDomainMessage) -> bytes:
        """Record a message as successfully relayed and return its hash."""
        digest = message.hash
        self._relayed.add(digest)
        logger.info(
            "messenger.relayed",
            target=message.target,
            sender=message.sender,
            nonce=message.nonce,
            message_hash="0x" + digest.hex(),
        )
        return digest

    async def is_relayed(self, message_hash: bytes) -> bool:
        return bytes(message_hash) in self._relayed
