"""Domain exceptions for the fast-withdrawal desk.

These exceptions are framework-agnostic and represent business rule violations.
They are caught and translated to HTTP responses by the API layer's middleware.
Every one of them aborts the whole operation and nothing is committed, except
TransferOutcomeUnknown, which keeps the ledger transition.
"""


class FastWithdrawalError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "FAST_WITHDRAWAL_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Access Control Errors ---


class Unauthorized(FastWithdrawalError):
    """Raised when a non-owner attempts an owner-only operation."""

    def __init__(self, caller: str, operation: str) -> None:
        super().__init__(
            message=f"{caller} is not allowed to call {operation}",
            code="UNAUTHORIZED",
        )
        self.caller = caller
        self.operation = operation


class WrongBeneficiary(FastWithdrawalError):
    """Raised when a non-owner claims a withdrawal that is not theirs."""

    def __init__(self, caller: str, beneficiary: str) -> None:
        super().__init__(
            message=f"Caller {caller} is not the beneficiary {beneficiary}",
            code="WRONG_BENEFICIARY",
        )
        self.caller = caller
        self.beneficiary = beneficiary


# --- Ledger State Errors ---


class AlreadyGreenlighted(FastWithdrawalError):
    """Raised when a withdrawal key is already settled but UNSET was expected."""

    def __init__(self, withdrawal_key: str, status: str) -> None:
        super().__init__(
            message=f"Withdrawal {withdrawal_key} already greenlighted (status {status})",
            code="ALREADY_GREENLIGHTED",
        )
        self.withdrawal_key = withdrawal_key
        self.status = status


class NotGreenlighted(FastWithdrawalError):
    """Raised when the owner claims a withdrawal it never fronted."""

    def __init__(self, withdrawal_key: str, status: str) -> None:
        super().__init__(
            message=f"Withdrawal {withdrawal_key} was not greenlighted (status {status})",
            code="NOT_GREENLIGHTED",
        )
        self.withdrawal_key = withdrawal_key
        self.status = status


class AlreadyClaimed(FastWithdrawalError):
    """Raised when the owner tries to reclaim the same fronted withdrawal twice."""

    def __init__(self, withdrawal_key: str) -> None:
        super().__init__(
            message=f"Withdrawal {withdrawal_key} already claimed by the owner",
            code="ALREADY_CLAIMED",
        )
        self.withdrawal_key = withdrawal_key


# --- Message Errors ---


class MessageNotRelayed(FastWithdrawalError):
    """Raised when the messenger has no record of the reconstructed message."""

    def __init__(self, message_hash: str) -> None:
        super().__init__(
            message=f"Cross-domain message {message_hash} has not been relayed",
            code="MESSAGE_NOT_RELAYED",
        )
        self.message_hash = message_hash


# --- Transfer Errors ---


class TransferFailed(FastWithdrawalError):
    """Raised when the token did not report a successful transfer."""

    def __init__(self, token: str, destination: str, amount: int, reason: str = "") -> None:
        detail = f": {reason}" if reason else ""
        super().__init__(
            message=f"Transfer of {amount} {token} to {destination} failed{detail}",
            code="TRANSFER_FAILED",
        )
        self.token = token
        self.destination = destination
        self.amount = amount


class TransferOutcomeUnknown(FastWithdrawalError):
    """Raised when a transfer may have moved value but its result was never seen.

    Unlike every other error, the ledger transition that preceded the transfer
    is committed, so the key cannot be paid out again. An operator has to
    reconcile it against the chain.
    """

    def __init__(
        self,
        token: str,
        destination: str,
        amount: int,
        reason: str = "",
        tx_hash: str | None = None,
    ) -> None:
        detail = f" (tx {tx_hash})" if tx_hash else ""
        super().__init__(
            message=(
                f"Outcome of transfer of {amount} {token} to {destination} "
                f"is unknown{detail}: {reason or 'no result'}"
            ),
            code="TRANSFER_OUTCOME_UNKNOWN",
        )
        self.token = token
        self.destination = destination
        self.amount = amount
        self.reason = reason
        self.tx_hash = tx_hash


class ReentrantCall(FastWithdrawalError):
    """Raised when an external transfer calls back into the settlement engine."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            message=f"Reentrant call to {operation} rejected",
            code="REENTRANT_CALL",
        )
        self.operation = operation


# --- Input Errors ---


class InvalidAddress(FastWithdrawalError):
    """Raised when a value is not a 20-byte hex address."""

    def __init__(self, value: str) -> None:
        super().__init__(
            message=f"Not a valid address: {value!r}",
            code="INVALID_ADDRESS",
        )
        self.value = value


class InvalidAmount(FastWithdrawalError):
    """Raised when an amount or nonce does not fit a uint256."""

    def __init__(self, name: str, value: object) -> None:
        super().__init__(
            message=f"{name} must be an integer in [0, 2**256), got {value!r}",
            code="INVALID_AMOUNT",
        )
        self.name = name
        self.value = value
