"""Collaborator Protocols.

Defines the interfaces the settlement engine consumes from the outside world:
a token contract that moves value and a messenger that records relays.
These are Protocols (structural subtyping) so adapters don't need to inherit
from a base class — they just need to match the shape.

The domain layer has ZERO imports from web3 or any RPC client.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class TokenGateway(Protocol):
    """ERC20-style value transfer, addressed by token contract.

    Concrete implementations:
        - infrastructure/simulated.py  (in-memory ledger)
        - infrastructure/chain.py      (web3.py against a live node)

    A transfer that certainly moved nothing returns False or raises
    TransferFailed. Any other exception means the outcome is unknown, and the
    engine keeps the key settled.
    """

    async def transfer_from(
        self,
        token: str,
        spender: str,
        source: str,
        destination: str,
        amount: int,
    ) -> bool:
        """Move `amount` from `source` to `destination` on behalf of `spender`.

        `spender` must hold an allowance from `source`. Returns True when the
        token reported success.
        """
        ...

    async def transfer(
        self,
        token: str,
        sender: str,
        destination: str,
        amount: int,
    ) -> bool:
        """Move `amount` out of `sender`'s own balance."""
        ...

    async def balance_of(self, token: str, account: str) -> int:
        ...


@runtime_checkable
class MessageRelayOracle(Protocol):
    """The L1 messenger's record of successfully relayed messages."""

    async def is_relayed(self, message_hash: bytes) -> bool:
        """Return True if the message with this keccak-256 hash was relayed."""
        ...
