"""
Companion Backend — Request ID Middleware
===========================================

What:  Assigns a short correlation ID to every request.
How:   Reuses the client's `X-Request-ID` header when present, otherwise
       generates an 8-character uuid prefix. The ID is stored in a
       ContextVar (read by the access log and the exception handlers)
       and echoed back in the `X-Request-ID` response header.

Error responses include the same value as `request_id`, so a user can
quote it when reporting a failed payment or upload.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own ID.
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Sets `request_id_var` and `request.state.request_id` for the request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
