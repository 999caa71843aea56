"""
Synergy Backend: Request Logging Middleware
============================================

What:  One access log line per request (method, path, status, duration,
       request ID, acting user, client IP) plus the logging filter that
       stamps request context onto every record.
When:  After RequestIDMiddleware, so the context variables are set.

Log level follows the status class: 5xx ERROR, 4xx WARNING, else INFO.
Request bodies are never logged.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from synergy.middleware.request_id import acting_user_var, request_id_var

logger = logging.getLogger("synergy.access")


class RequestContextFilter(logging.Filter):
    """
    Adds `request_id` and `user_id` attributes to every log record.

    Installed on the root handler by setup_logging(), so the format string
    can reference %(request_id)s and %(user_id)s. Outside a request both
    are "-".
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = request_id_var.get("") or "-"
        if not getattr(record, "user_id", None):
            record.user_id = acting_user_var.get("") or "-"
        return True


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each HTTP request with its outcome and duration."""

    # Health probes run every few seconds; logging them drowns real traffic
    SKIPPED_PATHS = {"/health"}

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.SKIPPED_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"
        method = request.method
        path = request.url.path

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
            "%s %s %d %.1fms from %s",
            method,
            path,
            status,
            duration_ms,
            client_ip,
            extra={
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
