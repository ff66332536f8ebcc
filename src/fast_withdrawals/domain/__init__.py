"""Domain layer — pure business logic with zero framework dependencies."""

from fast_withdrawals.domain.enums import (
    EventType,
    KeyScheme,
    WithdrawalStatus,
)
from fast_withdrawals.domain.exceptions import (
    AlreadyClaimed,
    AlreadyGreenlighted,
    FastWithdrawalError,
    InvalidAddress,
    InvalidAmount,
    MessageNotRelayed,
    NotGreenlighted,
    ReentrantCall,
    TransferFailed,
    TransferOutcomeUnknown,
    Unauthorized,
    WrongBeneficiary,
)
from fast_withdrawals.domain.messages import (
    ZERO_ADDRESS,
    CrossDomainMessage,
    withdrawal_key,
)
from fast_withdrawals.domain.protocols import (
    MessageRelayOracle,
    TokenGateway,
)
from fast_withdrawals.domain.state_machine import (
    WithdrawalStateMachine,
    validate_transition,
)

__all__ = [
    "EventType",
    "KeyScheme",
    "WithdrawalStatus",
    "AlreadyClaimed",
    "AlreadyGreenlighted",
    "FastWithdrawalError",
    "InvalidAddress",
    "InvalidAmount",
    "MessageNotRelayed",
    "NotGreenlighted",
    "ReentrantCall",
    "TransferFailed",
    "TransferOutcomeUnknown",
    "Unauthorized",
    "WrongBeneficiary",
    "ZERO_ADDRESS",
    "CrossDomainMessage",
    "withdrawal_key",
    "MessageRelayOracle",
    "TokenGateway",
    "WithdrawalStateMachine",
    "validate_transition",
]
