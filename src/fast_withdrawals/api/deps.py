"""FastAPI dependency injection providers.

These are used with Depends() in route handlers to inject the settlement
engine and the caller's identity.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Header, Request

from fast_withdrawals.services.market_maker_service import MarketMakerService


def get_market_maker(request: Request) -> MarketMakerService:
    """Provide the engine built during application startup."""
    return request.app.state.market_maker


def get_caller(
    x_caller_address: Annotated[
        str,
        Header(
            min_length=42,
            max_length=42,
            description="L1 address of the principal making the call",
        ),
    ],
) -> str:
    """Identity of the caller, taken from the X-Caller-Address header.

    The engine checks it against the owner and the beneficiary; it is not
    authenticated here.
    """
    return x_caller_address
