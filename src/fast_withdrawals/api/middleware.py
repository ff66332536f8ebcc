"""FastAPI middleware for request tracing, error handling, and CORS.

Middleware stack (applied bottom-up):
    1. RequestIDMiddleware — injects X-Request-ID into every request/response
    2. ErrorHandlerMiddleware — catches domain exceptions -> structured JSON errors
    3. CORSMiddleware — handles browser-based operator dashboards
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

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

if TYPE_CHECKING:
    from fastapi import FastAPI, Request, Response

logger = structlog.get_logger(__name__)

# Most specific first; the first isinstance match wins.
ERROR_STATUS: list[tuple[type[FastWithdrawalError], int]] = [
    (Unauthorized, 403),
    (WrongBeneficiary, 403),
    (AlreadyGreenlighted, 409),
    (NotGreenlighted, 409),
    (AlreadyClaimed, 409),
    (MessageNotRelayed, 409),
    (ReentrantCall, 409),
    (InvalidAddress, 422),
    (InvalidAmount, 422),
    (TransferFailed, 502),
    (TransferOutcomeUnknown, 504),
]


def status_for(exc: FastWithdrawalError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 400


# ---------------------------------------------------------------------------
# 1. Request ID Middleware
# ---------------------------------------------------------------------------
class RequestIDMiddleware(BaseHTTPMiddleware):
    """Inject a unique X-Request-ID into every request for log correlation."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


# ---------------------------------------------------------------------------
# 2. Error Handler Middleware
# ---------------------------------------------------------------------------
class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Catch domain exceptions and return structured JSON error responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except (TransferFailed, TransferOutcomeUnknown) as exc:
            logger.error("settlement.transfer_failed", error=exc.message, code=exc.code)
            return JSONResponse(
                status_code=status_for(exc),
                content={"error": exc.code, "message": exc.message},
            )
        except FastWithdrawalError as exc:
            logger.warning("settlement.rejected", error=exc.message, code=exc.code)
            return JSONResponse(
                status_code=status_for(exc),
                content={"error": exc.code, "message": exc.message},
            )
        except Exception as exc:
            logger.exception("unhandled.error", error=str(exc))
            return JSONResponse(
                status_code=500,
                content={
                    "error": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                },
            )


# ---------------------------------------------------------------------------
# Setup function
# ---------------------------------------------------------------------------
def setup_middleware(app: FastAPI) -> None:
    """Register all middleware on the FastAPI application.

    Order matters — middleware is applied bottom-up, so the last added
    middleware runs first.
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(ErrorHandlerMiddleware)

    app.add_middleware(RequestIDMiddleware)
