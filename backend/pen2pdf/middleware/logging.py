"""
Pen2PDF Backend: Request Logging Middleware
=============================================

What:  One access log line per HTTP request on the `pen2pdf.access` logger.
How:   Measures wall time around the handler and logs method, path, status,
       duration, request id and client IP. The level follows the status:
       5xx ERROR, 4xx WARNING, otherwise INFO.
Who:   Applied to every request via Starlette middleware, inside
       RequestIDMiddleware so the request id is already set.

Never logged: request bodies, uploaded files, chat messages, Authorization.
AI routes are the slow ones; their duration is dominated by the fallback
loop (one provider round-trip per attempted candidate).
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from pen2pdf.middleware.request_id import request_id_var

logger = logging.getLogger("pen2pdf.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    SKIPPED_PATHS = {"/health"}

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in self.SKIPPED_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"
        method = request.method
        rid = request_id_var.get("")

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
            "%s %s %d %.1fms [%s] from %s",
            method,
            path,
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
