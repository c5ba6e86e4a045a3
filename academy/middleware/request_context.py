"""Request ID and access-log middleware.

Every request gets an ID (the client's X-Request-ID or a fresh UUID)
held in ``request_id_var``, so any log line emitted while serving it can
be correlated.  The handler filter installed by setup_logging copies the
ID onto each LogRecord; the JSON formatter emits it as ``request_id``.

One access line is logged per request.  Orchestrator probes and scrapes
are logged at DEBUG so they do not drown out progress traffic, and 5xx
responses at WARNING so they carry a source location.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from academy.core.logging import request_id_var

logger = logging.getLogger(__name__)

_QUIET_PATHS = frozenset({"/health", "/ready", "/metrics"})


def _access_level(path: str, status_code: int) -> int:
    if status_code >= 500:
        return logging.WARNING
    if path in _QUIET_PATHS:
        return logging.DEBUG
    return logging.INFO


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        token = request_id_var.set(req_id)
        start = time.monotonic()
        try:
            response = await call_next(request)
            elapsed_ms = round((time.monotonic() - start) * 1000, 1)
            path = request.url.path
            logger.log(
                _access_level(path, response.status_code),
                "%s %s -> %d (%.1fms)",
                request.method,
                path,
                response.status_code,
                elapsed_ms,
                extra={
                    "request_id": req_id,
                    "method": request.method,
                    "path": path,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                },
            )
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = req_id
        return response
