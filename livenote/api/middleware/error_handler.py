"""
Global error handling for the FastAPI application.

Catches LiveNoteError subclasses, Pydantic validation errors, and
unhandled exceptions, converting them into a consistent JSON envelope.
"""

import logging
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from livenote.core.exceptions import LiveNoteError
from livenote.core.models import ErrorResponse

logger = logging.getLogger(__name__)


def _envelope(status_code: int, detail: str, code: str, timestamp: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            detail=detail,
            code=code,
            timestamp=timestamp or datetime.now(UTC).isoformat(),
        ).model_dump(),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Attach exception handlers to the FastAPI application.

    1. ``LiveNoteError`` maps domain errors to their status code.
    2. ``RequestValidationError`` becomes a 422 envelope.
    3. Anything else becomes a 500 without leaking the traceback.
    """

    @app.exception_handler(LiveNoteError)
    async def livenote_error_handler(_request: Request, exc: LiveNoteError) -> JSONResponse:
        return _envelope(exc.status_code, exc.detail, exc.code, exc.timestamp)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        _request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return _envelope(422, str(exc), "VALIDATION_ERROR")

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error on %s %s: %r", request.method, request.url.path, exc)
        return _envelope(500, "Internal server error", "INTERNAL_ERROR")
