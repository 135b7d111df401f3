"""
SheetServer — Request ID Middleware
=====================================

What:  Assigns a correlation ID to each request and returns it in X-Request-ID.
How:   Uses the client's X-Request-ID header when present, otherwise a short
       UUID. The ID is stored in a ContextVar (read by the access logger and
       the exception handlers) and in request.state.
Who:   Applied to every request via Starlette middleware.
When:  Before request logging, so every log line of a request shares the ID.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Behavior:
        1. Take X-Request-ID from the request, or generate an 8-char UUID prefix
        2. Store it in request_id_var and request.state.request_id
        3. Echo it in the response's X-Request-ID header
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
