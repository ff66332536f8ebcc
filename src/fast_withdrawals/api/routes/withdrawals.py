"""Withdrawal settlement REST API routes.

Routes:
    POST   /api/v1/withdrawals/greenlight        — Owner fronts a withdrawal
    POST   /api/v1/withdrawals/claim             — Claim a relayed withdrawal
    GET    /api/v1/withdrawals                   — Ledger rows of a beneficiary
    GET    /api/v1/withdrawals/status            — Ledger status of a withdrawal
    GET    /api/v1/withdrawals/message           — Reconstructed relay envelope
    GET    /api/v1/withdrawals/{key}/events      — Audit trail of a withdrawal key
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from fast_withdrawals.api.deps import get_caller, get_market_maker
from fast_withdrawals.domain.messages import UINT256_MAX
from fast_withdrawals.logging_config import get_logger
from fast_withdrawals.schemas.withdrawals import (
    ClaimRequest,
    GreenlightRequest,
    LedgerEventResponse,
    MessageResponse,
    WithdrawalResponse,
    WithdrawalStatusResponse,
)
from fast_withdrawals.services.market_maker_service import MarketMakerService

router = APIRouter(prefix="/api/v1/withdrawals", tags=["Withdrawals"])
logger = get_logger(__name__)

AddressQuery = Annotated[str, Query(min_length=42, max_length=42)]
AmountQuery = Annotated[int, Query(ge=0, le=UINT256_MAX)]


# ---------------------------------------------------------------------------
# Greenlight
# ---------------------------------------------------------------------------


@router.post(
    "/greenlight",
    response_model=WithdrawalResponse,
    status_code=201,
    summary="Front a withdrawal from inventory",
)
async def greenlight(
    request: GreenlightRequest,
    caller: str = Depends(get_caller),
    engine: MarketMakerService = Depends(get_market_maker),
) -> WithdrawalResponse:
    """Owner only. Transfers `amount` from `inventory` to the beneficiary now."""
    entry = await engine.greenlight(
        caller=caller,
        token=request.token,
        inventory=request.inventory,
        beneficiary=request.beneficiary,
        amount=request.amount,
        nonce=request.nonce,
    )
    return WithdrawalResponse.model_validate(entry)


# ---------------------------------------------------------------------------
# Claim
# ---------------------------------------------------------------------------


@router.post(
    "/claim",
    response_model=WithdrawalResponse,
    summary="Claim a relayed withdrawal",
)
async def claim(
    request: ClaimRequest,
    caller: str = Depends(get_caller),
    engine: MarketMakerService = Depends(get_market_maker),
) -> WithdrawalResponse:
    """Pays the owner (if it greenlighted) or the beneficiary (if nobody did)."""
    entry = await engine.claim(
        caller=caller,
        token=request.token,
        beneficiary=request.beneficiary,
        amount=request.amount,
        nonce=request.nonce,
    )
    return WithdrawalResponse.model_validate(entry)


# ---------------------------------------------------------------------------
# Read endpoints
# ---------------------------------------------------------------------------


@router.get(
    "",
    response_model=list[WithdrawalResponse],
    summary="List ledger rows of a beneficiary",
)
async def list_withdrawals(
    beneficiary: AddressQuery,
    engine: MarketMakerService = Depends(get_market_maker),
) -> list[WithdrawalResponse]:
    entries = await engine.list_withdrawals(beneficiary)
    return [WithdrawalResponse.model_validate(e) for e in entries]


@router.get(
    "/status",
    response_model=WithdrawalStatusResponse,
    summary="Get the ledger status of a withdrawal",
)
async def get_status(
    token: AddressQuery,
    beneficiary: AddressQuery,
    amount: AmountQuery,
    nonce: Annotated[int | None, Query(ge=0, le=UINT256_MAX)] = None,
    engine: MarketMakerService = Depends(get_market_maker),
) -> WithdrawalStatusResponse:
    status_data = await engine.get_status(token, beneficiary, amount, nonce)
    return WithdrawalStatusResponse(**status_data)


@router.get(
    "/message",
    response_model=MessageResponse,
    summary="Reconstruct the cross-domain message of a withdrawal",
)
async def get_message(
    token: AddressQuery,
    beneficiary: AddressQuery,
    amount: AmountQuery,
    nonce: Annotated[int, Query(ge=0, le=UINT256_MAX)],
    engine: MarketMakerService = Depends(get_market_maker),
) -> MessageResponse:
    """Shows exactly which envelope and hash the messenger is asked about."""
    return MessageResponse(**await engine.describe_message(token, beneficiary, amount, nonce))


@router.get(
    "/{withdrawal_key}/events",
    response_model=list[LedgerEventResponse],
    summary="Get audit trail",
)
async def get_events(
    withdrawal_key: str,
    engine: MarketMakerService = Depends(get_market_maker),
) -> list[LedgerEventResponse]:
    events = await engine.get_events(withdrawal_key)
    return [LedgerEventResponse.model_validate(e) for e in events]
