"""
SheetServer — Rate Limiting Middleware
========================================

What:  Per-IP sliding window rate limiter in front of the spreadsheet routes.
How:   Tracks request timestamps per IP in memory. Requests past the limit are
       answered with 429 and a Retry-After header without reaching a route.
Who:   Applied to every request via Starlette middleware.
When:  Outermost middleware (rejects excess traffic before any processing).

Algorithm: Sliding Window Counter
    1. Each IP gets a list of request timestamps
    2. On each request, drop timestamps older than the window
    3. If remaining count >= limit, reject with 429
    4. Otherwise, record the current timestamp and allow through

Limits:
    In-memory state is per process. Several workers each keep their own window.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from sheetserver.config import settings
from sheetserver.exceptions import RateLimitExceededError
from sheetserver.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory sliding window rate limiter.

    Configuration (from settings):
        rate_limit_requests: Max requests per window (default: 1000)
        rate_limit_window: Window duration in seconds (default: 60)

    Excluded paths:
        /health and the API documentation are never limited.
    """

    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        self._requests: Dict[str, List[float]] = defaultdict(list)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        client_ip = (
            getattr(request.client, "host", "unknown")
            if request.client
            else "unknown"
        )

        now = time.time()
        window_start = now - settings.rate_limit_window

        # ── Sliding Window: Clean old entries ─────────────────────────────
        self._requests[client_ip] = [
            ts for ts in self._requests[client_ip] if ts > window_start
        ]

        # ── Check rate limit ──────────────────────────────────────────────
        if len(self._requests[client_ip]) >= settings.rate_limit_requests:
            oldest = self._requests[client_ip][0]
            retry_after = int(oldest + settings.rate_limit_window - now) + 1
            error = RateLimitExceededError(retry_after=retry_after)

            logger.warning(
                "Rate limit exceeded for IP %s: %d requests in %ds window",
                client_ip,
                len(self._requests[client_ip]),
                settings.rate_limit_window,
            )

            body = ErrorResponse(
                error="rate_limit_exceeded",
                message=error.message,
                details=error.context,
                request_id=request.headers.get("X-Request-ID"),
            )
            return JSONResponse(
                status_code=429,
                content=body.model_dump(),
                headers={"Retry-After": str(retry_after)},
            )

        # ── Record this request ───────────────────────────────────────────
        self._requests[client_ip].append(now)

        # Inactive IPs are pruned every 1000 recorded requests
        if sum(len(v) for v in self._requests.values()) % 1000 == 0:
            self._cleanup_inactive_ips(window_start)

        return await call_next(request)

    def _cleanup_inactive_ips(self, window_start: float) -> None:
        """Remove IPs that have no requests within the current window."""
        inactive_ips = [
            ip for ip, timestamps in self._requests.items()
            if not timestamps or max(timestamps) < window_start
        ]
        for ip in inactive_ips:
            del self._requests[ip]

        if inactive_ips:
            logger.debug("Cleaned up %d inactive IP entries", len(inactive_ips))
