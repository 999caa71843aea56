"""
Synergy Backend: Write Rate Limiting Middleware
================================================

What:  Sliding-window limit on state-changing requests (POST, PUT, PATCH,
       DELETE). Reads are never limited.
How:   Keeps the timestamps of recent writes per window in memory. A
       write counts against the acting user's window (X-User-ID) when one
       is named, and always against its client IP's window.

Algorithm: Sliding Window Log
    1. Drop timestamps older than the window
    2. If the remaining count >= limit, reject with 429 and Retry-After
    3. Otherwise record now and continue

Deployment Note:
    State is per process. With several workers each enforces its own
    window; a shared store (e.g. Redis) is needed for a global limit.
"""

import logging
import time
from typing import Dict, List, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from synergy.config import settings
from synergy.exceptions import RateLimitExceededError
from synergy.middleware.request_id import acting_user_var, request_id_var

logger = logging.getLogger(__name__)

WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory sliding window rate limiter for writes.

    Configuration (from settings):
        rate_limit_requests: Max writes per window (default: 120)
        rate_limit_window: Window duration in seconds (default: 600)
        rate_limit_ip_requests: Per-IP ceiling for identified writes (default: 600)
    """

    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        self._requests: Dict[str, List[float]] = {}

    def _windows(self, request: Request) -> List[Tuple[str, int]]:
        """
        Windows a write counts against, with their limits.

        Anonymous writes use the client IP window at rate_limit_requests.
        A write naming an acting user gets that user's own window, and also
        counts against the IP window at the higher rate_limit_ip_requests
        ceiling. The header is not resolved here, so any well-formed id
        passes; the ceiling bounds what rotating ids can buy.
        """
        client_ip = request.client.host if request.client else "unknown"
        ip_key = f"ip:{client_ip}"
        user = acting_user_var.get("")
        if user:
            return [
                (ip_key, settings.rate_limit_ip_requests),
                (f"user:{user}", settings.rate_limit_requests),
            ]
        return [(ip_key, settings.rate_limit_requests)]

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.method not in WRITE_METHODS:
            return await call_next(request)

        windows = self._windows(request)
        now = time.time()
        window_start = now - settings.rate_limit_window

        # A rejected write creates no entries, so rotated ids stop at the IP window
        allowed = []
        for key, limit in windows:
            recent = [ts for ts in self._requests.get(key, ()) if ts > window_start]
            if len(recent) >= limit:
                self._requests[key] = recent
                return self._reject(request, key, recent, now)
            allowed.append((key, recent))

        for key, recent in allowed:
            recent.append(now)
            self._requests[key] = recent
        if len(self._requests) > 10000:
            self._cleanup_inactive(window_start)

        return await call_next(request)

    def _reject(self, request: Request, key: str, recent: List[float], now: float) -> Response:
        retry_after = int(recent[0] + settings.rate_limit_window - now) + 1
        logger.warning(
            "Write rate limit exceeded for %s: %d requests in %ds window",
            key,
            len(recent),
            settings.rate_limit_window,
        )
        error = RateLimitExceededError(retry_after=retry_after)
        return JSONResponse(
            status_code=429,
            content={
                "error": "rate_limit_exceeded",
                "message": error.message,
                "details": error.context,
                "request_id": request_id_var.get("") or None,
            },
            headers={"Retry-After": str(retry_after)},
        )

    def _cleanup_inactive(self, window_start: float) -> None:
        """Forgets callers with no writes inside the current window."""
        inactive = [
            key for key, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] <= window_start
        ]
        for key in inactive:
            del self._requests[key]
        if inactive:
            logger.debug("Cleaned up %d inactive rate limit entries", len(inactive))
