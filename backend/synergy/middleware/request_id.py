"""
Synergy Backend: Request ID Middleware
=======================================

What:  Assigns a correlation ID to each request and records the acting user.
How:   Stores both in ContextVars so every log record emitted while the
       request is handled can carry them (see RequestContextFilter), and
       echoes the request ID in the X-Request-ID response header.
When:  Outermost middleware; runs before rate limiting and logging.

Client-Supplied IDs:
    An incoming X-Request-ID is reused only when it is short and made of
    letters, digits and dashes; anything else is replaced, so clients
    cannot inject arbitrary text into log lines.
"""

import re
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ── Context Variables ─────────────────────────────────────────────────────
# Coroutine-local: concurrent requests in one thread each see their own value
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
acting_user_var: ContextVar[str] = ContextVar("acting_user", default="")

USER_ID_HEADER = "X-User-ID"
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9-]{1,64}$")


def acting_user_from(request: Request) -> str:
    """The X-User-ID header when it is a well-formed UUID, else ""."""
    raw = request.headers.get(USER_ID_HEADER, "")
    try:
        return str(uuid.UUID(raw))
    except ValueError:
        return ""


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Sets request_id_var and acting_user_var for the duration of a request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID", "")
        if not _REQUEST_ID_PATTERN.match(rid):
            rid = str(uuid.uuid4())[:8]

        request_id_var.set(rid)
        acting_user_var.set(acting_user_from(request))
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
