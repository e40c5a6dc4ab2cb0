"""
Access logging middleware.

One log line per request with method, path, status code and latency.
Slow requests (scoring, coaching) are logged at WARNING.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("callscore.access")

SLOW_REQUEST_MS = 5000.0


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request once it completes."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            log = logger.warning if elapsed_ms > SLOW_REQUEST_MS else logger.info
            log(
                "Request | method=%s | path=%s | status=%d | elapsed=%.2fms",
                request.method,
                request.url.path,
                status_code,
                elapsed_ms,
            )
