"""Cross-domain message reconstruction.

The desk never sees the message the L2 mirror emitted; it rebuilds the exact
bytes the L1 messenger hashed when it recorded the relay and asks whether that
hash is known. The layout therefore has to match the messenger bit for bit:

    withdraw call  = selector("withdraw(address,uint256)")
                     ++ abi.encode(beneficiary, amount)
    relay envelope = selector("relayMessage(address,address,bytes,uint256)")
                     ++ abi.encode(target, sender, withdraw call, nonce)
    message hash   = keccak256(relay envelope)

where target is the token's L1 deposit box and sender its L2 mirror.

Withdrawal keys live here too because they are hashed the same way.
"""

from __future__ import annotations

from dataclasses import dataclass

from eth_abi import encode
from eth_utils import (
    function_signature_to_4byte_selector,
    is_address,
    keccak,
    to_checksum_address,
)

from fast_withdrawals.domain.enums import KeyScheme
from fast_withdrawals.domain.exceptions import InvalidAddress, InvalidAmount

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
UINT256_MAX = 2**256 - 1

WITHDRAW_SIGNATURE = "withdraw(address,uint256)"
RELAY_MESSAGE_SIGNATURE = "relayMessage(address,address,bytes,uint256)"

WITHDRAW_SELECTOR = function_signature_to_4byte_selector(WITHDRAW_SIGNATURE)
RELAY_MESSAGE_SELECTOR = function_signature_to_4byte_selector(RELAY_MESSAGE_SIGNATURE)


def normalize_address(value: str) -> str:
    """Return the checksummed form of an address or raise InvalidAddress."""
    if not isinstance(value, str) or not is_address(value):
        raise InvalidAddress(str(value))
    return to_checksum_address(value)


def check_uint256(name: str, value: int) -> int:
    """Reject anything that does not fit a uint256 slot."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmount(name, value)
    if value < 0 or value > UINT256_MAX:
        raise InvalidAmount(name, value)
    return value


def encode_withdraw_call(beneficiary: str, amount: int) -> bytes:
    """Encode the withdraw call the L2 mirror sends to the deposit box."""
    return WITHDRAW_SELECTOR + encode(
        ["address", "uint256"],
        [normalize_address(beneficiary), check_uint256("amount", amount)],
    )


def encode_relay_envelope(target: str, sender: str, message: bytes, nonce: int) -> bytes:
    """Encode the calldata the messenger records for a relayed message."""
    return RELAY_MESSAGE_SELECTOR + encode(
        ["address", "address", "bytes", "uint256"],
        [
            normalize_address(target),
            normalize_address(sender),
            message,
            check_uint256("nonce", nonce),
        ],
    )


def message_hash(envelope: bytes) -> bytes:
    """Hash a relay envelope the way the messenger does."""
    return keccak(envelope)


@dataclass(frozen=True)
class CrossDomainMessage:
    """A fully reconstructed withdrawal message.

    Attributes:
        target: L1 deposit box the message is addressed to.
        sender: L2 mirror that emitted the message.
        message: The encoded withdraw call.
        nonce: Messenger nonce of the message.
    """

    target: str
    sender: str
    message: bytes
    nonce: int

    @classmethod
    def for_withdrawal(
        cls,
        deposit_box: str,
        l2_mirror: str,
        beneficiary: str,
        amount: int,
        nonce: int,
    ) -> CrossDomainMessage:
        return cls(
            target=normalize_address(deposit_box),
            sender=normalize_address(l2_mirror),
            message=encode_withdraw_call(beneficiary, amount),
            nonce=check_uint256("nonce", nonce),
        )

    @property
    def calldata(self) -> bytes:
        return encode_relay_envelope(self.target, self.sender, self.message, self.nonce)

    @property
    def hash(self) -> bytes:
        return message_hash(self.calldata)

    def to_dict(self) -> dict:
        """Serialize for API responses and audit metadata."""
        return {
            "target": self.target,
            "sender": self.sender,
            "message": "0x" + self.message.hex(),
            "nonce": self.nonce,
            "calldata": "0x" + self.calldata.hex(),
            "hash": "0x" + self.hash.hex(),
        }


def withdrawal_key(
    token: str,
    beneficiary: str,
    amount: int,
    nonce: int | None = None,
    scheme: KeyScheme = KeyScheme.LEGACY,
) -> str:
    """Derive the ledger key of a withdrawal as a 0x-prefixed hex string.

    Under KeyScheme.LEGACY the nonce is ignored. Under KeyScheme.NONCE_BOUND
    it is mandatory.
    """
    types = ["address", "address", "uint256"]
    values: list = [
        normalize_address(token),
        normalize_address(beneficiary),
        check_uint256("amount", amount),
    ]
    if scheme is KeyScheme.NONCE_BOUND:
        if nonce is None:
            raise InvalidAmount("nonce", nonce)
        types.append("uint256")
        values.append(check_uint256("nonce", nonce))
    return "0x" + keccak(encode(types, values)).hex()
