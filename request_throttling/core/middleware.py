"""HTTP middleware for request correlation and throttling.

The request ID middleware:
- Accepts incoming X-Request-ID header or generates a UUID
- Stores request_id in contextvars for access throughout the request lifecycle
- Injects request_id into response headers for client-side tracking
- Measures total request duration and includes it in response headers
- Clears context after request completion to prevent context leaks

The throttle middleware is the interception point for the throttle engine:
every request is evaluated before it reaches any route, and rejected requests
are answered with 429 without running the rest of the pipeline.

Usage:
    app.middleware("http")(throttle_middleware)
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response
from fastapi.responses import PlainTextResponse

from request_throttling.core.config import settings
from request_throttling.core.errors import StoreUnavailableError
from request_throttling.core.exception_handlers import app_error_handler
from request_throttling.core.logging import clear_request_id, set_request_id
from request_throttling.services.throttle_engine import ThrottleEngine

logger = logging.getLogger(__name__)


async def request_id_middleware(request: Request, call_next) -> Response:
    """HTTP middleware for request ID generation and propagation.

    If the client provides an X-Request-ID header (configurable via
    LOG_REQUEST_ID_HEADER env var), that value is used. Otherwise, a new UUID
    is generated. The ID is then propagated back in the response headers
    and stored in contextvars for log correlation.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The response from the next handler with request_id and
            duration headers added.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


async def throttle_middleware(request: Request, call_next) -> Response:
    """HTTP middleware applying the throttle verdict to each request.

    Only registered when throttling is enabled. The engine and the store
    failure policy are read from ``request.app.state``.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: 429 when the limit is exceeded, 503 when the counter store
            fails under the fail-closed policy, otherwise the downstream
            response untouched.
    """

    engine: ThrottleEngine = request.app.state.throttle_engine

    try:
        verdict = await engine.evaluate(request)
    except StoreUnavailableError as exc:
        if request.app.state.throttle_fail_open:
            logger.warning(
                "throttle.store_error",
                extra={"error_code": exc.code, "policy": "fail_open"},
            )
            return await call_next(request)

        logger.error(
            "throttle.store_error",
            extra={"error_code": exc.code, "policy": "fail_closed"},
        )
        return await app_error_handler(request, exc)

    if not verdict.allowed:
        return PlainTextResponse(verdict.message, status_code=verdict.status_code)

    return await call_next(request)
