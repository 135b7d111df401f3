"""
SheetServer — Request Logging Middleware
==========================================

What:  One access log line per HTTP request with status and duration.
How:   Measures time around call_next and logs on the `sheetserver.access`
       logger with structured `extra` fields for log aggregation.
Who:   Applied to every request via Starlette middleware.
When:  After RequestIDMiddleware (uses the request ID for correlation).

Log levels by status:
    5xx → ERROR   (engine or label store failure)
    4xx → WARNING (invalid selection, parameter or body)
    else → INFO

Logged: method, path, query string, status, duration, IP, request ID.
Not logged: request bodies (cell contents).
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from sheetserver.middleware.request_id import request_id_var

logger = logging.getLogger("sheetserver.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs each request after the response is produced.

    Health checks are skipped; they run every few seconds and carry no
    spreadsheet activity.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start_time = time.perf_counter()

        client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"
        method = request.method
        path = request.url.path
        query = request.url.query
        rid = request_id_var.get("")

        if path == "/health":
            return await call_next(request)

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s%s %d %.1fms [%s] from %s",
            method,
            path,
            f"?{query}" if query else "",
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )

        return response
