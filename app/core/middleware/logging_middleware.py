"""Logging middleware for FastAPI.

Adds a per-request UUID, binds the gateway identity headers (`X-User-Id`,
`X-Organization-Id`) and client IP into logging contextvars, and measures latency.
Runs early in the stack so routers and the delivery pipeline inherit the context.
"""

import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from app.core.logging_config import (
    bind_request_context,
    log_request,
    reset_request_context,
)

USER_HEADER = "X-User-Id"
ORG_HEADER = "X-Organization-Id"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log HTTP requests/responses with timing and caller identity."""

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        user_id = request.headers.get(USER_HEADER) or None
        org_id = request.headers.get(ORG_HEADER) or None
        ip_address = request.client.host if request.client else "unknown"

        tokens = bind_request_context(
            request_id=request_id,
            user_id=user_id,
            org_id=org_id,
            ip_address=ip_address,
        )

        start_time = time.perf_counter()
        response: Optional[Response] = None
        try:
            response = await call_next(request)
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            log_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=response.status_code if response else 500,
                duration_ms=duration_ms,
                ip_address=ip_address,
                user_id=user_id,
                request_id=request_id,
            )
            reset_request_context(tokens)

        response.headers["X-Request-ID"] = request_id
        return response


__all__ = ["LoggingMiddleware", "USER_HEADER", "ORG_HEADER"]
