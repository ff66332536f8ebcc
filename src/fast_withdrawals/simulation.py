"""Fast Withdrawals — End-to-End Simulation.

Simulates the race between a market maker and a withdrawing user with a
MarketMakerBot and a UserBot on the in-memory token ledger and messenger:

    Scenario 1: Market maker path
        - User withdraws 100 on L2
        - Market maker greenlights: user is paid from inventory at once
        - The message is relayed; the deposit box credits the desk
        - The user's own claim is rejected; the market maker reclaims 100

    Scenario 2: Self-claim path
        - User withdraws 100 on L2, nobody greenlights
        - The message is relayed; the user claims 100 from the desk
        - A late greenlight and an owner claim are both rejected

    Scenario 3: Relay not yet confirmed
        - Claims before the relay fail with MESSAGE_NOT_RELAYED
        - A claim with the wrong nonce fails even after the relay

Usage:
    fast-withdrawals-sim
    fast-withdrawals-sim --scenario 2
    fast-withdrawals-sim --database-url sqlite+aiosqlite:///./sim.db
"""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from fast_withdrawals.domain.enums import KeyScheme
from fast_withdrawals.domain.exceptions import FastWithdrawalError
from fast_withdrawals.domain.messages import UINT256_MAX, CrossDomainMessage
from fast_withdrawals.infrastructure.database.engine import (
    build_engine,
    build_session_factory,
    create_tables,
)
from fast_withdrawals.infrastructure.simulated import InMemoryMessenger, InMemoryTokenLedger
from fast_withdrawals.logging_config import get_logger, setup_logging
from fast_withdrawals.services.market_maker_service import MarketMakerService

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = get_logger("simulation")

TOKEN = "0x" + "a1" * 20
DEPOSIT_BOX = "0x" + "b2" * 20
L2_MIRROR = "0x" + "c3" * 20
OWNER = "0x" + "d4" * 20
DESK = "0x" + "e5" * 20
INVENTORY = "0x" + "f6" * 20
USER = "0x" + "17" * 20

AMOUNT = 100
INVENTORY_FUNDS = 1_000


# ---------------------------------------------------------------------------
# Simulated world
# ---------------------------------------------------------------------------
@dataclass
class World:
    """Everything a scenario touches: the engine and both simulated contracts."""

    engine: MarketMakerService
    tokens: InMemoryTokenLedger
    messenger: InMemoryMessenger
    db_engine: AsyncEngine
    next_nonce: int = 0

    async def balance(self, account: str) -> int:
        return await self.tokens.balance_of(TOKEN, account)

    def withdraw_on_l2(self, beneficiary: str, amount: int) -> CrossDomainMessage:
        """The L2 mirror emits a withdrawal message; returns it unrelayed."""
        message = CrossDomainMessage.for_withdrawal(
            DEPOSIT_BOX, L2_MIRROR, beneficiary, amount, self.next_nonce
        )
        self.next_nonce += 1
        logger.info("l2.withdrawal_sent", beneficiary=beneficiary, nonce=message.nonce)
        return message

    def relay(self, message: CrossDomainMessage, amount: int) -> None:
        """The challenge period ends: the messenger relays and the box pays the desk."""
        self.messenger.relay(message)
        self.tokens.mint(TOKEN, DESK, amount)


async def build_world(database_url: str = "sqlite+aiosqlite:///:memory:") -> World:
    db_engine = build_engine(database_url)
    await create_tables(db_engine)

    tokens = InMemoryTokenLedger()
    messenger = InMemoryMessenger()
    tokens.mint(TOKEN, INVENTORY, INVENTORY_FUNDS)
    tokens.approve(TOKEN, INVENTORY, DESK, UINT256_MAX)

    engine = MarketMakerService(
        session_factory=build_session_factory(db_engine),
        tokens=tokens,
        oracle=messenger,
        owner=OWNER,
        market_maker_address=DESK,
        key_scheme=KeyScheme.LEGACY,
    )
    await engine.register_deposit_box(OWNER, TOKEN, DEPOSIT_BOX)
    await engine.register_mirror(OWNER, TOKEN, L2_MIRROR)
    return World(engine=engine, tokens=tokens, messenger=messenger, db_engine=db_engine)


# ---------------------------------------------------------------------------
# Bot Agents
# ---------------------------------------------------------------------------
@dataclass
class MarketMakerBot:
    """Watches L2 withdrawals and fronts them from inventory."""

    world: World
    address: str = OWNER
    rejections: list[str] = field(default_factory=list)

    async def greenlight(self, beneficiary: str, amount: int) -> bool:
        try:
            await self.world.engine.greenlight(self.address, TOKEN, INVENTORY, beneficiary, amount)
        except FastWithdrawalError as exc:
            self.rejections.append(exc.code)
            logger.info("MARKET MAKER: greenlight rejected", code=exc.code)
            return False
        logger.info("MARKET MAKER: greenlit", beneficiary=beneficiary, amount=amount)
        return True

    async def reclaim(self, beneficiary: str, amount: int, nonce: int) -> bool:
        try:
            await self.world.engine.claim(self.address, TOKEN, beneficiary, amount, nonce)
        except FastWithdrawalError as exc:
            self.rejections.append(exc.code)
            logger.info("MARKET MAKER: claim rejected", code=exc.code)
            return False
        logger.info("MARKET MAKER: reclaimed", amount=amount, nonce=nonce)
        return True


@dataclass
class UserBot:
    """Withdraws on L2 and tries to collect on L1."""

    world: World
    address: str = USER
    rejections: list[str] = field(default_factory=list)

    async def claim(self, amount: int, nonce: int) -> bool:
        try:
            await self.world.engine.claim(self.address, TOKEN, self.address, amount, nonce)
        except FastWithdrawalError as exc:
            self.rejections.append(exc.code)
            logger.info("USER: claim rejected", code=exc.code)
            return False
        logger.info("USER: claimed", amount=amount, nonce=nonce)
        return True


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------
async def scenario_1_market_maker_path(world: World) -> dict:
    mm, user = MarketMakerBot(world), UserBot(world)
    message = world.withdraw_on_l2(USER, AMOUNT)

    await mm.greenlight(USER, AMOUNT)
    user_after_greenlight = await world.balance(USER)

    world.relay(message, AMOUNT)
    await user.claim(AMOUNT, message.nonce)
    await mm.reclaim(USER, AMOUNT, message.nonce)

    return {
        "user_balance": await world.balance(USER),
        "user_balance_after_greenlight": user_after_greenlight,
        "owner_balance": await world.balance(OWNER),
        "inventory_balance": await world.balance(INVENTORY),
        "desk_balance": await world.balance(DESK),
        "user_rejections": user.rejections,
        "market_maker_rejections": mm.rejections,
        "status": (await world.engine.get_status(TOKEN, USER, AMOUNT))["status"],
    }


async def scenario_2_self_claim_path(world: World) -> dict:
    mm, user = MarketMakerBot(world), UserBot(world)
    message = world.withdraw_on_l2(USER, AMOUNT)

    world.relay(message, AMOUNT)
    await user.claim(AMOUNT, message.nonce)
    await mm.greenlight(USER, AMOUNT)
    await mm.reclaim(USER, AMOUNT, message.nonce)

    return {
        "user_balance": await world.balance(USER),
        "owner_balance": await world.balance(OWNER),
        "inventory_balance": await world.balance(INVENTORY),
        "desk_balance": await world.balance(DESK),
        "greenlighted": await world.engine.is_greenlighted(TOKEN, USER, AMOUNT),
        "user_rejections": user.rejections,
        "market_maker_rejections": mm.rejections,
        "status": (await world.engine.get_status(TOKEN, USER, AMOUNT))["status"],
    }


async def scenario_3_relay_pending(world: World) -> dict:
    user = UserBot(world)
    message = world.withdraw_on_l2(USER, AMOUNT)

    await user.claim(AMOUNT, message.nonce)
    world.relay(message, AMOUNT)
    await user.claim(AMOUNT, message.nonce + 1)

    return {
        "user_balance": await world.balance(USER),
        "user_rejections": user.rejections,
        "status": (await world.engine.get_status(TOKEN, USER, AMOUNT))["status"],
    }


SCENARIOS = {
    1: scenario_1_market_maker_path,
    2: scenario_2_self_claim_path,
    3: scenario_3_relay_pending,
}


async def run_scenario(num: int, database_url: str = "sqlite+aiosqlite:///:memory:") -> dict:
    """Run one scenario in a fresh world and return its outcome."""
    if num not in SCENARIOS:
        raise ValueError(f"Unknown scenario {num}. Available: {sorted(SCENARIOS)}")

    world = await build_world(database_url)
    try:
        result = await SCENARIOS[num](world)
    finally:
        await world.db_engine.dispose()
    logger.info("simulation.scenario_done", scenario=num, **{k: str(v) for k, v in result.items()})
    return result


async def run_all(database_url: str = "sqlite+aiosqlite:///:memory:") -> dict[int, dict]:
    return {num: await run_scenario(num, database_url) for num in SCENARIOS}


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Fast Withdrawals Simulation")
    parser.add_argument(
        "--scenario",
        type=int,
        default=0,
        help="Run a specific scenario (1, 2, or 3). Default: run all.",
    )
    parser.add_argument(
        "--database-url",
        default="sqlite+aiosqlite:///:memory:",
        help="Async SQLAlchemy URL for the ledger. Default: SQLite in memory.",
    )
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)

    setup_logging(log_level=args.log_level, json_logs=False)

    if args.scenario == 0:
        asyncio.run(run_all(args.database_url))
    else:
        asyncio.run(run_scenario(args.scenario, args.database_url))


if __name__ == "__main__":
    main()
