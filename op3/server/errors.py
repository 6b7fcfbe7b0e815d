"""Application errors and the centralised exception handlers.

Managers raise ``AppError`` (or a ``LookupError`` subclass for missing rows);
routers let them propagate.  ``register_exception_handlers`` maps every known
error shape onto an HTTP status and the ``{success: false, message}``
envelope:

- ``AppError``                  -> its own status / message
- ``LookupError``               -> 404
- ``IntegrityError`` (dup key)  -> 400 "Duplicate field value entered"
- ``RequestValidationError``    -> 400, messages joined with ", "
- ``HTTPException``             -> its status / detail
- anything else                 -> 500 with the raw message
"""

from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from op3.server.responses import error

NOT_FOUND_MESSAGE = "Resource not found"
DUPLICATE_MESSAGE = "Duplicate field value entered"
DEFAULT_ERROR_MESSAGE = "Server Error"


class AppError(Exception):
    """An operational error with an HTTP status code."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NotFoundError(LookupError):
    """Base for "row not found" errors.  ``str(exc)`` is the user-facing message."""


def _respond(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error(message or DEFAULT_ERROR_MESSAGE))


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    logger.warning("{} {} -> {}: {}", request.method, request.url.path, exc.status_code, exc.message)
    return _respond(exc.status_code, exc.message)


async def not_found_handler(request: Request, exc: LookupError) -> JSONResponse:
    message = str(exc) if isinstance(exc, NotFoundError) and str(exc) else NOT_FOUND_MESSAGE
    logger.info("{} {} -> 404: {}", request.method, request.url.path, message)
    return _respond(status.HTTP_404_NOT_FOUND, message)


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("{} {} -> 400: integrity error {}", request.method, request.url.path, exc.orig)
    return _respond(status.HTTP_400_BAD_REQUEST, DUPLICATE_MESSAGE)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for err in exc.errors():
        field = ".".join(str(item) for item in err.get("loc", []) if item != "body")
        messages.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    message = ", ".join(messages)
    logger.info("{} {} -> 400: {}", request.method, request.url.path, message)
    return _respond(status.HTTP_400_BAD_REQUEST, message)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else DEFAULT_ERROR_MESSAGE
    if exc.status_code == status.HTTP_404_NOT_FOUND and message == "Not Found":
        message = "Route not found"
    return _respond(exc.status_code, message)


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error("{} {} -> 500", request.method, request.url.path)
    return _respond(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))


def register_exception_handlers(app: FastAPI) -> None:
    """Register every handler on *app*."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(LookupError, not_found_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
