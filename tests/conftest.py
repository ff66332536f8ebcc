"""Shared test fixtures for the Fast Withdrawals test suite.

Provides:
    - Well-known addresses for the owner, the desk, an inventory and users
    - An in-memory SQLite database with the schema created
    - The simulated token ledger and messenger
    - A ready settlement engine with one registered token
    - Async test support via pytest-asyncio
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from fast_withdrawals.domain.enums import KeyScheme
from fast_withdrawals.domain.messages import UINT256_MAX, CrossDomainMessage
from fast_withdrawals.infrastructure.database.engine import (
    build_engine,
    build_session_factory,
    create_tables,
)
from fast_withdrawals.infrastructure.simulated import InMemoryMessenger, InMemoryTokenLedger
from fast_withdrawals.services.market_maker_service import MarketMakerService

# ---------------------------------------------------------------------------
# Addresses
# ---------------------------------------------------------------------------

OWNER = "0x1111111111111111111111111111111111111111"
DESK = "0x2222222222222222222222222222222222222222"
INVENTORY = "0x3333333333333333333333333333333333333333"
USER = "0x4444444444444444444444444444444444444444"
STRANGER = "0x5555555555555555555555555555555555555555"

TOKEN = "0x6666666666666666666666666666666666666666"
DEPOSIT_BOX = "0x7777777777777777777777777777777777777777"
L2_MIRROR = "0x8888888888888888888888888888888888888888"

INVENTORY_FUNDS = 10_000


# ---------------------------------------------------------------------------
# Database Fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db_engine() -> AsyncIterator[AsyncEngine]:
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(db_engine)


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    async with session_factory() as s, s.begin():
        yield s


# ---------------------------------------------------------------------------
# Chain Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tokens() -> InMemoryTokenLedger:
    """Token ledger with a funded inventory that has approved the desk."""
    ledger = InMemoryTokenLedger()
    ledger.mint(TOKEN, INVENTORY, INVENTORY_FUNDS)
    ledger.approve(TOKEN, INVENTORY, DESK, UINT256_MAX)
    return ledger


@pytest.fixture
def messenger() -> InMemoryMessenger:
    return InMemoryMessenger()


# ---------------------------------------------------------------------------
# Engine Fixtures
# ---------------------------------------------------------------------------


def make_engine(
    session_factory: async_sessionmaker[AsyncSession],
    tokens: InMemoryTokenLedger,
    messenger: InMemoryMessenger,
    key_scheme: KeyScheme = KeyScheme.LEGACY,
) -> MarketMakerService:
    return MarketMakerService(
        session_factory=session_factory,
        tokens=tokens,
        oracle=messenger,
        owner=OWNER,
        market_maker_address=DESK,
        key_scheme=key_scheme,
    )


@pytest_asyncio.fixture
async def engine(
    session_factory: async_sessionmaker[AsyncSession],
    tokens: InMemoryTokenLedger,
    messenger: InMemoryMessenger,
) -> MarketMakerService:
    """Settlement engine with TOKEN registered to DEPOSIT_BOX and L2_MIRROR."""
    svc = make_engine(session_factory, tokens, messenger)
    await svc.register_deposit_box(OWNER, TOKEN, DEPOSIT_BOX)
    await svc.register_mirror(OWNER, TOKEN, L2_MIRROR)
    return svc


def relay_withdrawal(
    messenger: InMemoryMessenger,
    tokens: InMemoryTokenLedger,
    beneficiary: str,
    amount: int,
    nonce: int,
) -> CrossDomainMessage:
    """Relay the withdrawal message and credit the desk, as the deposit box would."""
    message = CrossDomainMessage.for_withdrawal(DEPOSIT_BOX, L2_MIRROR, beneficiary, amount, nonce)
    messenger.relay(message)
    tokens.mint(TOKEN, DESK, amount)
    return message
