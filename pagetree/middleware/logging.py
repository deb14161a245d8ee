"""
PageTree CMS — Request Logging Middleware
=========================================

What:  One access-log line per HTTP request.
How:   Times the downstream call and logs method, path, status, duration
       and request id once the response exists. Redirects also log their
       target, so a form submission and the page it lands on can be matched.

Log lines:
    2024-01-15T12:00:00 [INFO] pagetree.access: GET /pages/Home → 200 (12.3ms) rid=a1b2c3d4
    2024-01-15T12:00:01 [INFO] pagetree.access: POST /create/page → 302 / (40.2ms) rid=e5f6a7b8

Request bodies are never logged; page content submitted through forms stays
out of the logs.
"""

import logging
import time
from typing import Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from pagetree.middleware.request_id import request_id_var

logger = logging.getLogger("pagetree.access")

# Probe endpoints, hit every few seconds by load balancers
QUIET_PATHS: Tuple[str, ...] = ("/health",)


def level_for_status(status: int) -> int:
    """5xx → ERROR, 4xx → WARNING, everything else → INFO."""
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Writes the access log; runs inside RequestIDMiddleware so the id is set."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        rid = request_id_var.get("")
        try:
            response = await call_next(request)
        except Exception:
            # The 500 body is produced outside this middleware
            logger.error(
                "%s %s → unhandled exception (%.1fms) rid=%s",
                request.method,
                request.url.path,
                (time.perf_counter() - started) * 1000,
                rid,
                extra={"request_id": rid, "status": 500},
            )
            raise
        elapsed_ms = (time.perf_counter() - started) * 1000

        target = response.headers.get("location", "")
        logger.log(
            level_for_status(response.status_code),
            "%s %s → %d%s (%.1fms) rid=%s",
            request.method,
            request.url.path,
            response.status_code,
            f" {target}" if target else "",
            elapsed_ms,
            rid,
            extra={
                "request_id": rid,
                "status": response.status_code,
                "duration_ms": round(elapsed_ms, 2),
                "client_ip": request.client.host if request.client else "unknown",
            },
        )
        return response
