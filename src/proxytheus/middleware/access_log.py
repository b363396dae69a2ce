"""Access logging middleware."""

from __future__ import annotations

import logging
import re
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

# Control character pattern for log injection prevention.
_CONTROL_CHAR_RE = re.compile(r"[\x00-\x08\x0a-\x1f\x7f]")


def _sanitize_log_value(value: str) -> str:
    """Replace control characters (newlines, tabs, etc.) to prevent log injection."""
    return _CONTROL_CHAR_RE.sub("_", value)


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Logs one line when a request starts and one when it ends.

    Only the method, path, status and duration are logged; headers and query
    strings may carry credentials and are left out.
    """

    EXEMPT_PATHS = frozenset({"/health"})

    def __init__(self, app: Callable, enabled: bool = True) -> None:
        super().__init__(app)
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.enabled or request.url.path in self.EXEMPT_PATHS:
            return await call_next(request)

        request_id = _sanitize_log_value(request.headers.get("x-request-id", str(uuid.uuid4())))
        safe_path = _sanitize_log_value(request.url.path)
        start_time = time.monotonic()

        logger.info(
            "REQUEST_START request_id=%s method=%s path=%s",
            request_id,
            request.method,
            safe_path,
        )

        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration_ms = int((time.monotonic() - start_time) * 1000)
            logger.info(
                "REQUEST_END request_id=%s method=%s path=%s status=%s duration_ms=%d",
                request_id,
                request.method,
                safe_path,
                status_code,
                duration_ms,
            )
