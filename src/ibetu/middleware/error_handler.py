"""Global error handlers — every failure leaves as the ``{error, data}`` envelope.

Domain errors are part of the normal result contract and use HTTP 200; the
message is the only failure signal.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ibetu.errors import IBetUError, StoreError

logger = structlog.get_logger()


def error_envelope(message: str, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, "data": None})


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Validation error"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"{location}: {first.get('msg', 'invalid')}" if location else str(first.get("msg", "Validation error"))


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(IBetUError)
    async def domain_error_handler(request: Request, exc: IBetUError) -> JSONResponse:
        logger.info("request_failed", path=request.url.path, error_type=type(exc).__name__, error=exc.message)
        return error_envelope(exc.message)

    @app.exception_handler(SQLAlchemyError)
    async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error("store_error", path=request.url.path, method=request.method, exc_info=exc)
        return error_envelope(StoreError(str(exc.orig) if getattr(exc, "orig", None) else str(exc)).message)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return error_envelope(str(exc.detail), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_envelope(_first_validation_message(exc), status_code=422)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions — always return the envelope."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return error_envelope("Internal server error", status_code=500)
