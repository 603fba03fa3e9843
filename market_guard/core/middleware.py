"""HTTP middleware for request correlation.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from market_guard.core.config import settings
from market_guard.core.logging import clear_request_id, set_request_id
from market_guard.core.rate_limit import get_client_ip


async def request_id_middleware(request: Request, call_next) -> Response:
    """Tag each request with a correlation id and the resolved client IP.

    The id is taken from the configured request-id header (default
    ``X-Request-ID``) or generated, stored in contextvars for log records, and
    echoed on the response together with ``X-Request-Duration-ms``. The client
    IP is stored on ``request.state.client_ip`` for throttling of anonymous
    callers.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with correlation headers added.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    request.state.client_ip = get_client_ip(request)

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
