"""
HTTP middleware: request correlation and access logging.
"""
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from headoffice.core.config import settings
from headoffice.core.logging import request_id_var, tenant_id_var, user_id_var

logger = logging.getLogger(__name__)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Propagates X-Request-ID (or mints one) and the forwarded identity into the logging context."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(settings.request_id_header) or str(uuid.uuid4())
        tokens = [
            (request_id_var, request_id_var.set(request_id)),
            (tenant_id_var, tenant_id_var.set(request.headers.get(settings.tenant_id_header, ""))),
            (user_id_var, user_id_var.set(request.headers.get(settings.user_id_header, ""))),
        ]
        try:
            response = await call_next(request)
        finally:
            for var, token in reversed(tokens):
                var.reset(token)
        response.headers[settings.request_id_header] = request_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        response.headers["X-Process-Time"] = str(elapsed_ms)
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
            }
        )
        return response
