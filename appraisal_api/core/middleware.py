"""
Request-scoped middleware: correlation ids and access logging.
"""
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from appraisal_api.core.config import settings
from appraisal_api.core.logging import request_id_var

logger = logging.getLogger("appraisal_api.access")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Propagates X-Request-ID (or mints one) into the logging context and the response."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(settings.request_id_header) or uuid.uuid4().hex
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers[settings.request_id_header] = request_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Process-Time"] = f"{elapsed_ms:.1f}ms"
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code}",
            extra={"status_code": response.status_code, "duration_ms": round(elapsed_ms, 1)},
        )
        return response
