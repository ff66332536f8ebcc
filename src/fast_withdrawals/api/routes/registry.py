"""Token registry REST API routes.

Routes:
    GET    /api/v1/registry                        — List registered tokens
    GET    /api/v1/registry/{token}                — Get a token's entry
    PUT    /api/v1/registry/{token}/deposit-box    — Register the L1 deposit box
    PUT    /api/v1/registry/{token}/mirror         — Register the L2 mirror

Writes are owner-only; the caller is named by the X-Caller-Address header.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Path

from fast_withdrawals.api.deps import get_caller, get_market_maker
from fast_withdrawals.schemas.withdrawals import (
    RegisterDepositBoxRequest,
    RegisterMirrorRequest,
    RegistryEntryResponse,
)
from fast_withdrawals.services.market_maker_service import MarketMakerService

router = APIRouter(prefix="/api/v1/registry", tags=["Registry"])

TokenPath = Annotated[
    str,
    Path(min_length=42, max_length=42, description="L1 token address"),
]


@router.get(
    "",
    response_model=list[RegistryEntryResponse],
    summary="List registered tokens",
)
async def list_registrations(
    engine: MarketMakerService = Depends(get_market_maker),
) -> list[RegistryEntryResponse]:
    entries = await engine.list_registrations()
    return [RegistryEntryResponse(**e.to_dict()) for e in entries]


@router.get(
    "/{token}",
    response_model=RegistryEntryResponse,
    summary="Get a token's registry entry",
)
async def get_registration(
    token: TokenPath,
    engine: MarketMakerService = Depends(get_market_maker),
) -> RegistryEntryResponse:
    entry = await engine.get_registration(token)
    return RegistryEntryResponse(**entry.to_dict())


@router.put(
    "/{token}/deposit-box",
    response_model=RegistryEntryResponse,
    summary="Register the L1 deposit box of a token",
)
async def register_deposit_box(
    token: TokenPath,
    request: RegisterDepositBoxRequest,
    caller: str = Depends(get_caller),
    engine: MarketMakerService = Depends(get_market_maker),
) -> RegistryEntryResponse:
    """Owner only. Overwrites any previous deposit box."""
    entry = await engine.register_deposit_box(caller, token, request.box)
    return RegistryEntryResponse(**entry.to_dict())


@router.put(
    "/{token}/mirror",
    response_model=RegistryEntryResponse,
    summary="Register the L2 mirror of a token",
)
async def register_mirror(
    token: TokenPath,
    request: RegisterMirrorRequest,
    caller: str = Depends(get_caller),
    engine: MarketMakerService = Depends(get_market_maker),
) -> RegistryEntryResponse:
    """Owner only. Overwrites any previous mirror."""
    entry = await engine.register_mirror(caller, token, request.l2_token)
    return RegistryEntryResponse(**entry.to_dict())
