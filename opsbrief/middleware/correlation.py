# Correlation ID Middleware
"""Per-request correlation ID, echoed back and attached to request logs."""

import logging
import time
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("opsbrief.middleware.correlation")

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Take X-Correlation-ID from the request or generate one."""

    CORRELATION_HEADER = "X-Correlation-ID"

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get(self.CORRELATION_HEADER) or str(uuid.uuid4())
        _correlation_id.set(correlation_id)
        request.state.correlation_id = correlation_id

        start_time = time.monotonic()
        response = await call_next(request)

        elapsed_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            "[%s] %s %s -> %d (%dms)",
            correlation_id,
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        response.headers[self.CORRELATION_HEADER] = correlation_id
        return response
