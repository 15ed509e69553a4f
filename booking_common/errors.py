"""Domain error taxonomy and the FastAPI handlers rendering it as ``{"error": ...}``."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class BookingError(Exception):
    """Base class for errors raised by the ledger, workflow and catalog."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.message}


class ValidationError(BookingError):
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(BookingError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, conflicting_booking_id: Optional[int] = None) -> None:
        super().__init__(message)
        self.conflicting_booking_id = conflicting_booking_id

    def to_body(self) -> Dict[str, Any]:
        body = super().to_body()
        if self.conflicting_booking_id is not None:
            body["conflicting_booking_id"] = self.conflicting_booking_id
        return body


class Forbidden(BookingError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(BookingError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateError(BookingError):
    status_code = status.HTTP_409_CONFLICT


class UpstreamError(BookingError):
    """E-mail or push delivery failed. Logged by the dispatcher, never returned to clients."""

    status_code = status.HTTP_502_BAD_GATEWAY


async def booking_error_handler(_: Request, exc: BookingError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def http_error_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if location:
        message = f"{location}: {message}"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": "Internal server error"})


def install_error_handlers(app: FastAPI) -> None:
    """Attach the shared error handlers to an app."""

    app.add_exception_handler(BookingError, booking_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
