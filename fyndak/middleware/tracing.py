"""
Request tracing middleware
"""
import time
import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from fyndak.core.logging_config import generate_trace_id, set_trace_id

logger = logging.getLogger(__name__)


class TracingMiddleware(BaseHTTPMiddleware):
    """Middleware to add trace ID to all requests"""

    async def dispatch(self, request: Request, call_next):
        trace_id = request.headers.get("X-Trace-ID") or generate_trace_id()
        set_trace_id(trace_id)

        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.url.path}",
                extra={"duration_ms": round(duration_ms, 2)},
                exc_info=True
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"{request.method} {request.url.path} {response.status_code}",
            extra={"duration_ms": round(duration_ms, 2)}
        )

        response.headers["X-Trace-ID"] = trace_id
        return response
