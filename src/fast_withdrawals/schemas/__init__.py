"""Pydantic request/response schemas."""

from fast_withdrawals.schemas.withdrawals import (
    ClaimRequest,
    GreenlightRequest,
    HealthResponse,
    LedgerEventResponse,
    MessageResponse,
    RegisterDepositBoxRequest,
    RegisterMirrorRequest,
    RegistryEntryResponse,
    WithdrawalResponse,
    WithdrawalStatusResponse,
)

__all__ = [
    "ClaimRequest",
    "GreenlightRequest",
    "HealthResponse",
    "LedgerEventResponse",
    "MessageResponse",
    "RegisterDepositBoxRequest",
    "RegisterMirrorRequest",
    "RegistryEntryResponse",
    "WithdrawalResponse",
    "WithdrawalStatusResponse",
]
