"""HTTP middleware for request ID propagation and access logging.

Every request/response pair carries a correlation id: the incoming
``X-Request-ID`` header (name configurable) or a fresh UUID. The id lives in
a context variable for the duration of the request so every log line emitted
by the limiter, dispatcher and relay service is tagged with it.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from app.core.config import settings
from app.core.exception_handlers import general_exception_handler
from app.core.logging import clear_request_id, set_request_id

logger = logging.getLogger(__name__)


async def request_id_middleware(request: Request, call_next) -> Response:
    """Tag the request with a correlation id and time it.

    Unexpected exceptions are rendered here, while the id is still set, so
    the generic 500 body and headers carry it too.

    Side Effects:
        - Sets request_id in contextvars for the request lifetime
        - Adds X-Request-ID and X-Request-Duration-ms response headers
        - Emits one ``http.request`` access log line
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        try:
            response: Response = await call_next(request)
        except Exception as exc:
            response = await general_exception_handler(request, exc)
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
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
