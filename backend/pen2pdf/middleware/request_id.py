"""
Pen2PDF Backend: Request ID Middleware
========================================

What:  Assigns a short correlation ID to each request and echoes it back in
       the X-Request-ID response header.
How:   Uses the client's X-Request-ID when sent, else the first 8 chars of a
       UUID4. Stored in a ContextVar so log lines and error handlers deep in
       the call stack (including every fallback attempt) can read it.
Who:   Applied to every request via Starlette middleware.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests in one thread each see their own value
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Sets request_id_var and request.state.request_id, adds X-Request-ID."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)

        response.headers["X-Request-ID"] = rid
        return response
