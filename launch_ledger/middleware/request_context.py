"""
RequestContext Middleware - Adds request tracking to all requests.

Adds to request.state:
- request_id: Caller-supplied X-Request-ID or a fresh UUID
- ip_address: Direct client IP address

The request id is bound into the structlog context so every log line for the
request carries it, and echoed in the X-Request-ID response header. Audit
entries written by cron and admin routes use request.state.request_id.
"""

import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from launch_ledger.infrastructure.observability.logging import (
    bind_request_id,
    get_logger,
    log_request,
)

logger = get_logger(__name__)

MAX_REQUEST_ID_LENGTH = 128


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        incoming = request.headers.get("x-request-id")
        if incoming and len(incoming) <= MAX_REQUEST_ID_LENGTH:
            request_id = incoming
        else:
            request_id = str(uuid.uuid4())

        request.state.request_id = request_id
        request.state.ip_address = request.client.host if request.client else None
        bind_request_id(request_id)

        logger.debug(
            "Request started",
            method=request.method,
            path=request.url.path,
            ip_address=request.state.ip_address,
        )

        start_time = time.time()
        response = await call_next(request)
        duration_ms = round((time.time() - start_time) * 1000, 2)

        log_request(request.method, request.url.path, response.status_code, duration_ms)

        # Add request ID to response headers (for client-side tracing)
        response.headers["X-Request-ID"] = request_id
        return response
