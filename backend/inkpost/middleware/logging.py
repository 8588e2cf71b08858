"""
Inkpost: Request Logging Middleware
===================================

What:  One access-log line for every HTTP request, including requests that
       end in the diagnostic 500 page.
Why:   Gives status and latency per request, tied to the request id, so a
       diagnostic page a user reports can be found in the logs.
How:   Measures wall time around call_next and logs method, path, status,
       duration and client address. The request id is added to each record
       by RequestIdFilter (see request_context.py).
Who:   Applied to every request via Starlette middleware.
When:  Inside RequestContextMiddleware, so the request id is already set.

Levels:
    5xx → ERROR, 4xx → WARNING, everything else → INFO
    /static/* → DEBUG (asset requests are frequent and rarely interesting)

Failed requests:
    An exception from the route chain is logged as status 500 and re-raised
    unchanged; RequestContextMiddleware turns it into the diagnostic page.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("inkpost.access")


def level_for(status: int, path: str) -> int:
    """Log level for one access line."""
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    if path.startswith("/static/"):
        return logging.DEBUG
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs method, path, status, duration and client address per request.

    Logged information:
        - Request: method, path, client IP
        - Response: status code (500 when the route chain raised), duration
        - Correlation: request id, via RequestIdFilter
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # Why time.perf_counter: monotonic, unaffected by wall-clock changes
        start_time = time.perf_counter()

        # Why getattr: request.client may be None in testing
        client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"
        method = request.method
        path = request.url.path

        try:
            response = await call_next(request)
        except Exception:
            # The outer middleware answers with a 500 page; record it as such
            self._log(method, path, 500, start_time, client_ip)
            raise

        self._log(method, path, response.status_code, start_time, client_ip)
        return response

    @staticmethod
    def _log(method: str, path: str, status: int, start_time: float, client_ip: str) -> None:
        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.log(
            level_for(status, path),
            "%s %s %d %.1fms from %s",
            method,
            path,
            status,
            duration_ms,
            client_ip,
            extra={
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
