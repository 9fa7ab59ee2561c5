"""Global exception handlers.

Every ``AppError`` leaves the API as ``{"error": {code, message, request_id,
details?}}`` with a status taken from ``_STATUS_BY_ERROR``. Anything else is
a generic 500 that carries no internal detail.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from quota_gateway.core.errors import (
    AppError,
    AuthenticationAppError,
    ConfigurationMissingError,
    LimitExceededError,
    LLMAppError,
    StoreUnavailableError,
)
from quota_gateway.core.logging import get_request_id

logger = logging.getLogger(__name__)

# Checked in order; the first matching type wins. Anything else is a 400.
_STATUS_BY_ERROR: tuple[tuple[type[AppError], int], ...] = (
    (AuthenticationAppError, 403),
    (LimitExceededError, 429),
    (LLMAppError, 502),
    (StoreUnavailableError, 503),
    (ConfigurationMissingError, 503),
)


def status_code_for(exc: AppError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 400


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render a domain error.

    Client faults (4xx) are logged as warnings, gateway or upstream
    failures (5xx) as errors.
    """
    status_code = status_code_for(exc)
    request_id = get_request_id()

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "status_code": status_code,
            "path": request.url.path,
            "has_details": bool(exc.details),
            "request_id": request_id,
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": request_id,
    }
    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(status_code=status_code, content={"error": error_content})


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: log the failure, return an opaque 500."""
    logger.error(
        "unhandled_exception",
        exc_info=exc,
        extra={
            "error_type": type(exc).__name__,
            "path": request.url.path,
            "method": request.method,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
