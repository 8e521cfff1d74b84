"""Request tracing and response headers."""

import logging
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from venservice.config import settings

logger = logging.getLogger(__name__)

SLOW_REQUEST_SECONDS = 1.0


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag every request with an id and report how long it took.

    Submissions wait on the booking backend, so they are the usual source of
    slow-request warnings.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()

        response = await call_next(request)

        elapsed = time.perf_counter() - started
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{elapsed:.3f}s"

        summary = f"{request.method} {request.url.path} -> {response.status_code} in {elapsed:.3f}s [{request_id}]"
        if elapsed > SLOW_REQUEST_SECONDS:
            logger.warning(f"Slow request: {summary}")
        else:
            logger.debug(summary)

        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Hardening headers. Snapshots carry passenger contact details, so nothing is cached."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)

        response.headers.update(
            {
                "X-Content-Type-Options": "nosniff",
                "X-Frame-Options": "DENY",
                "Referrer-Policy": "no-referrer",
                "Cache-Control": "no-store",
            }
        )
        if not settings.debug:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response
