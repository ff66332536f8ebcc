"""Health check endpoint.

Verifies connectivity to the database and the L1 collaborators, returns
structured status. Used by Docker healthchecks and load balancers.
"""

from __future__ import annotations

from fastapi import APIRouter, Request

from fast_withdrawals.logging_config import get_logger
from fast_withdrawals.schemas.withdrawals import HealthResponse

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns the health status of the application and its dependencies.",
)
async def health_check(request: Request) -> HealthResponse:
    """Check the database and ask the messenger about an all-zero hash."""
    db_status = "unknown"
    chain_status = "unknown"

    try:
        from fast_withdrawals.infrastructure.database.engine import ping_db

        await ping_db()
        db_status = "healthy"
    except Exception as exc:
        db_status = f"unhealthy: {exc}"
        logger.error("health.db_check_failed", error=str(exc))

    try:
        oracle = request.app.state.oracle
        await oracle.is_relayed(bytes(32))
        chain_status = "healthy"
    except Exception as exc:
        chain_status = f"unhealthy: {exc}"
        logger.error("health.chain_check_failed", error=str(exc))

    overall = "ok" if db_status == "healthy" and chain_status == "healthy" else "degraded"

    return HealthResponse(
        status=overall,
        version="0.1.0",
        database=db_status,
        chain=chain_status,
    )
