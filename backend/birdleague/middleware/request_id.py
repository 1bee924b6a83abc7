"""
Bird League Backend — Request ID Middleware
============================================

What:  Gives each incoming request a short correlation ID and echoes it back.
Why:   Ties together every log line from one submission or restore, and lets
       the frontend quote an ID in bug reports.
How:   Takes X-Request-ID from the client if present, otherwise generates
       one; stores it in a ContextVar and in request.state; sets the response
       header.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns a request ID (client-provided or 8-char UUID prefix)."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
