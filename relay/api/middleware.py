"""Request tracing middleware.

Logs method, path, status code, duration and correlation ID for every
request as a structured log line.
"""

import time
from collections.abc import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger()

CORRELATION_HEADER = "X-Correlation-ID"


class RequestTracingMiddleware(BaseHTTPMiddleware):
    """Structured request logging.

    Runs outside the correlation middleware, so the ID is read back from
    the response header. For streaming responses the logged duration is
    time to first byte.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.error(
                "request_error",
                method=request.method,
                path=request.url.path,
                duration_ms=round(duration_ms, 2),
                correlation_id=request.headers.get(CORRELATION_HEADER),
                error_type=type(e).__name__,
                exc_info=e,
            )
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round(duration_ms, 2),
            correlation_id=response.headers.get(CORRELATION_HEADER),
        )
        return response
