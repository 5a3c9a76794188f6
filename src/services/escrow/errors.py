# src/services/escrow/errors.py
"""
Отображение ошибок эскроу в HTTP-ответы.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.core.errors import (
    BookingNotFound,
    ConfirmationRejected,
    DisputeNotFound,
    EscrowError,
    GatewayError,
    GatewayUnavailable,
    InvalidBookingTransition,
    ReservationNotFound,
)
from src.shared.models.common import ErrorResponse

_NOT_FOUND = (ReservationNotFound, BookingNotFound, DisputeNotFound)
_CONFLICT = (ConfirmationRejected, InvalidBookingTransition)


def status_code_for(exc: EscrowError) -> int:
    """HTTP-статус для ошибки эскроу."""
    if isinstance(exc, _NOT_FOUND):
        return 404
    if isinstance(exc, _CONFLICT):
        return 409
    if isinstance(exc, GatewayUnavailable):
        return 503
    if isinstance(exc, GatewayError):
        return 502
    return 400


def error_code_for(exc: EscrowError) -> str:
    """Код ошибки в snake_case по имени класса (ReservationExpired -> reservation_expired)."""
    name = type(exc).__name__
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in name).lstrip("_")


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(EscrowError)
    async def escrow_error_handler(request: Request, exc: EscrowError) -> JSONResponse:
        body = ErrorResponse(
            error_code=error_code_for(exc),
            message=str(exc),
            retryable=exc.retryable,
        )
        return JSONResponse(status_code=status_code_for(exc), content=body.model_dump())
