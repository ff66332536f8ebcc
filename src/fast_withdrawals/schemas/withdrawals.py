"""Pydantic schemas for the fast-withdrawal API.

These schemas define the request/response shapes for the REST API. They are
separate from the ORM models to maintain clean boundaries between the API and
database layers. Addresses are validated here already; amounts and nonces are
uint256 and may arrive as JSON integers or decimal strings.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from fast_withdrawals.domain.messages import UINT256_MAX

ADDRESS_FIELD = {
    "min_length": 42,
    "max_length": 42,
    "pattern": r"^0x[0-9a-fA-F]{40}$",
}


def _parse_uint(value: object) -> object:
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return value


# JSON integer or decimal string, within uint256
Uint256 = Annotated[int, BeforeValidator(_parse_uint), Field(ge=0, le=UINT256_MAX)]


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class RegisterDepositBoxRequest(BaseModel):
    """Request body for registering a token's L1 deposit box."""

    box: str = Field(
        ...,
        description="L1 contract custodying bridged deposits for the token",
        examples=["0x5FbDB2315678afecb367f032d93F642f64180aa3"],
        **ADDRESS_FIELD,
    )


class RegisterMirrorRequest(BaseModel):
    """Request body for registering a token's L2 mirror."""

    l2_token: str = Field(
        ...,
        description="L2 contract mirroring the token",
        **ADDRESS_FIELD,
    )


class WithdrawalParams(BaseModel):
    """Identity of a withdrawal as far as the ledger is concerned."""

    token: str = Field(..., description="L1 token address", **ADDRESS_FIELD)
    beneficiary: str = Field(..., description="L1 recipient of the withdrawal", **ADDRESS_FIELD)
    amount: Uint256 = Field(..., description="Amount in token base units")


class GreenlightRequest(WithdrawalParams):
    """Request body for fronting a withdrawal from an inventory account."""

    inventory: str = Field(
        ...,
        description="Account holding the market maker's inventory; must have approved it",
        **ADDRESS_FIELD,
    )
    nonce: Uint256 | None = Field(
        default=None,
        description="Messenger nonce; required when withdrawal keys are nonce-bound",
    )


class ClaimRequest(WithdrawalParams):
    """Request body for claiming a relayed withdrawal."""

    nonce: Uint256 = Field(..., description="Messenger nonce of the message")


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class RegistryEntryResponse(BaseModel):
    """A token's registry entry. Unset addresses are the zero address."""

    token: str
    deposit_box: str
    l2_mirror: str


class WithdrawalResponse(BaseModel):
    """Ledger row of a withdrawal key after a greenlight or claim."""

    model_config = ConfigDict(from_attributes=True)

    withdrawal_key: str
    token: str
    beneficiary: str
    amount: str
    nonce: str | None
    status: str
    created_at: datetime
    updated_at: datetime


class WithdrawalStatusResponse(BaseModel):
    """Lightweight status check response."""

    withdrawal_key: str
    status: str
    greenlighted: bool
    allowed_events: list[str] = Field(
        description="State machine events that can fire from the current status"
    )


class MessageResponse(BaseModel):
    """The reconstructed relay envelope of a withdrawal."""

    target: str
    sender: str
    message: str
    nonce: int
    calldata: str
    hash: str
    relayed: bool


class LedgerEventResponse(BaseModel):
    """Response schema for an audit event."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: uuid.UUID
    subject: str
    event_type: str
    old_status: str | None
    new_status: str | None
    actor: str
    metadata: dict | None = Field(default=None, validation_alias="metadata_json")
    created_at: datetime


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    database: str = "unknown"
    chain: str = "unknown"
