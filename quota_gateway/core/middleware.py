"""HTTP middleware: request correlation and access logging.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import re
import time
import uuid

from fastapi import Request, Response

from quota_gateway.core.config import settings
from quota_gateway.core.logging import clear_request_id, set_request_id

logger = logging.getLogger(__name__)

# Client-supplied ids end up in logs and response headers.
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def resolve_request_id(incoming: str | None) -> str:
    """Reuse a well-formed client id, otherwise mint a UUID4."""
    if incoming and _REQUEST_ID_PATTERN.match(incoming):
        return incoming
    return str(uuid.uuid4())


async def request_id_middleware(request: Request, call_next) -> Response:
    """Bind a request id to the logging context for the whole request.

    The id comes from the ``LOG_REQUEST_ID_HEADER`` header when valid and is
    echoed back on the response together with ``X-Request-Duration-ms``.
    One ``http.request`` line is logged per request.
    """

    header_name = settings.log.request_id_header
    request_id = resolve_request_id(request.headers.get(header_name))
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "http.request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers["X-Request-Duration-ms"] = f"{duration_ms:.2f}"
    return response
