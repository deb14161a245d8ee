"""
PageTree CMS — Request ID Middleware
====================================

What:  Tags each request with a short id used to correlate its log lines.
How:   Accepts an incoming X-Request-ID header or generates one, stores it in
       a ContextVar (for loggers) and request.state (for handlers), and
       echoes it back in the response header.
When:  Outermost middleware; runs before logging and data prefetch.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns `X-Request-ID` to every request and response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
