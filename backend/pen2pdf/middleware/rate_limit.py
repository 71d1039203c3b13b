"""
Pen2PDF Backend: Rate Limiting Middleware
===========================================

What:  Per-IP sliding window rate limiter with two buckets.
How:   Tracks request timestamps per (IP, bucket) in memory.
       - "ai" bucket:      routes that call a model provider (every such call
                           may fan out to several candidate models)
       - "default" bucket: every other route
Who:   Applied to every request via Starlette middleware.
When:  First in the middleware chain.

Algorithm: Sliding Window Counter
    1. Each (IP, bucket) gets a list of request timestamps
    2. On each request, drop timestamps older than the window
    3. If remaining count >= limit, reject with 429
    4. Otherwise record the timestamp and let the request through

In-memory state is per process. Multiple workers each keep their own counts.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from pen2pdf.config import settings

logger = logging.getLogger(__name__)

AI_PATHS = frozenset({
    "/textExtract",
    "/notesGenerate",
    "/api/chat/message",
    "/api/github-models/chat",
})


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory sliding window rate limiter.

    Configuration (from settings):
        rate_limit_requests:     Max requests per window, default bucket
        ai_rate_limit_requests:  Max requests per window, AI bucket
        rate_limit_window:       Window duration in seconds

    Excluded paths: /health and the API docs.

    Response on rate limit:
        HTTP 429 with a Retry-After header and the standard error body.
    """

    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        self._requests: Dict[Tuple[str, str], List[float]] = defaultdict(list)

    @staticmethod
    def bucket_for(path: str) -> Tuple[str, int]:
        if path in AI_PATHS:
            return "ai", settings.ai_rate_limit_requests
        return "default", settings.rate_limit_requests

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in self.EXCLUDED_PATHS:
            return await call_next(request)

        # Behind a proxy this is the proxy's address
        client_ip = (
            getattr(request.client, "host", "unknown")
            if request.client
            else "unknown"
        )
        bucket, limit = self.bucket_for(path)
        key = (client_ip, bucket)

        now = time.time()
        window_start = now - settings.rate_limit_window

        self._requests[key] = [ts for ts in self._requests[key] if ts > window_start]

        if len(self._requests[key]) >= limit:
            oldest = self._requests[key][0]
            retry_after = int(oldest + settings.rate_limit_window - now) + 1

            logger.warning(
                "Rate limit exceeded for IP %s (%s bucket): %d requests in %ds window",
                client_ip,
                bucket,
                len(self._requests[key]),
                settings.rate_limit_window,
            )

            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": f"Too many requests. Please wait {retry_after} seconds before retrying.",
                    "details": {"retry_after": retry_after, "bucket": bucket},
                },
                headers={"Retry-After": str(retry_after)},
            )

        self._requests[key].append(now)

        # Amortized cleanup of idle entries
        if sum(len(v) for v in self._requests.values()) % 1000 == 0:
            self._cleanup_inactive(window_start)

        return await call_next(request)

    def _cleanup_inactive(self, window_start: float) -> None:
        """Drops (IP, bucket) entries with no request inside the current window."""
        inactive = [
            key for key, timestamps in self._requests.items()
            if not timestamps or max(timestamps) < window_start
        ]
        for key in inactive:
            del self._requests[key]

        if inactive:
            logger.debug("Cleaned up %d inactive rate limit entries", len(inactive))
