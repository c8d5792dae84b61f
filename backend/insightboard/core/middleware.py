"""
Request middleware: correlation ids and request timing.
"""
import time
import uuid
import logging
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from insightboard.core.performance import PerformanceMonitor

logger = logging.getLogger(__name__)

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="system")

CORRELATION_HEADER = "X-Correlation-ID"


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """Tag each request (and every log line it emits) with a correlation id."""

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        token = correlation_id_var.set(correlation_id)

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
            duration = time.perf_counter() - start_time

            PerformanceMonitor.record_metric(
                "request_duration",
                duration,
                {"method": request.method, "path": request.url.path, "status_code": response.status_code}
            )
            response.headers[CORRELATION_HEADER] = correlation_id
            response.headers["X-Response-Time"] = f"{duration:.3f}"

            logger.info(
                f"{request.method} {request.url.path} - {response.status_code} ({duration:.3f}s)",
                extra={"method": request.method, "path": request.url.path, "status_code": response.status_code}
            )
            return response
        finally:
            correlation_id_var.reset(token)
