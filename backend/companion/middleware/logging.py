"""
Companion Backend — Access Log Middleware
===========================================

What:  One log line per request: method, path, status, duration, request ID
       and client IP, written to the `companion.access` logger.
Why:   uvicorn's own access log is silenced in setup_logging(); this one
       carries the request ID and picks its level from the status code.

Privacy:
    Request bodies and headers are never logged. They carry passwords,
    bearer tokens, KYC document keys and Stripe payloads.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from companion.middleware.request_id import request_id_var

logger = logging.getLogger("companion.access")

QUIET_PATHS = {"/health"}


def level_for_status(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every request except health probes.

    Duration is measured with perf_counter from middleware entry to the
    response, so it includes Stripe and S3 round trips made by the handler.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        rid = request_id_var.get("")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        logger.log(
            level_for_status(status),
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
