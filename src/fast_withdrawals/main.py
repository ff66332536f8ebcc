"""FastAPI application entry point for the fast-withdrawal desk.

Lifecycle:
    1. Startup: Initialize logging, database, the token gateway and messenger
       oracle, and the settlement engine.
    2. Running: Serve the REST API.
    3. Shutdown: Close database connections gracefully.

Run with:
    uv run uvicorn fast_withdrawals.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from fast_withdrawals.config import get_settings
from fast_withdrawals.logging_config import get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from fast_withdrawals.config import Settings
    from fast_withdrawals.services.market_maker_service import MarketMakerService


def build_market_maker(settings: Settings) -> MarketMakerService:
    """Assemble the settlement engine from configuration."""
    from fast_withdrawals.infrastructure.chain import build_collaborators
    from fast_withdrawals.infrastructure.database.engine import get_session_factory
    from fast_withdrawals.services.market_maker_service import MarketMakerService

    tokens, oracle = build_collaborators(settings)
    return MarketMakerService(
        session_factory=get_session_factory(),
        tokens=tokens,
        oracle=oracle,
        owner=settings.owner_address,
        market_maker_address=settings.market_maker_address,
        key_scheme=settings.key_scheme,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    settings = get_settings()

    setup_logging(
        log_level=settings.app_log_level,
        json_logs=not settings.is_development,
    )
    logger = get_logger(__name__)
    logger.info(
        "app.starting",
        env=settings.app_env,
        debug=settings.app_debug,
        simulate_chain=settings.simulate_chain,
        key_scheme=settings.key_scheme.value,
    )

    from fast_withdrawals.infrastructure.database.engine import close_db, init_db

    await init_db()

    if getattr(app.state, "market_maker", None) is None:
        engine = build_market_maker(settings)
        app.state.market_maker = engine
        app.state.oracle = engine.oracle

    logger.info(
        "app.started",
        host=settings.app_host,
        port=settings.app_port,
        owner=settings.owner_address,
        market_maker=settings.market_maker_address,
    )

    yield

    logger.info("app.shutting_down")
    await close_db()
    logger.info("app.stopped")


def create_app(market_maker: MarketMakerService | None = None) -> FastAPI:
    """Application factory — creates and configures the FastAPI app.

    Args:
        market_maker: A pre-built engine. When given, startup keeps it instead
            of building one from settings.
    """
    settings = get_settings()

    app = FastAPI(
        title="Fast Withdrawals",
        description=(
            "Market-maker desk fronting L2 -> L1 withdrawals before the "
            "cross-domain message is relayed."
        ),
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )
    app.state.market_maker = market_maker
    app.state.oracle = market_maker.oracle if market_maker is not None else None

    from fast_withdrawals.api.middleware import setup_middleware

    setup_middleware(app)

    from fast_withdrawals.api.routes.health import router as health_router
    from fast_withdrawals.api.routes.registry import router as registry_router
    from fast_withdrawals.api.routes.withdrawals import router as withdrawals_router

    app.include_router(health_router)
    app.include_router(registry_router)
    app.include_router(withdrawals_router)

    return app


# The app instance used by Uvicorn
app = create_app()
