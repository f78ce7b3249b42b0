"""
Request context logging.

Wraps every request so log records carry request-scoped fields without
the core knowing about logging.

Key behaviors:
- Request ID from X-Request-ID or a fresh UUID, echoed in the response
- bind_log_fields() attaches extra fields (e.g. subscriber_email)
- One access log line per request with status and latency
"""

from __future__ import annotations

import logging
import sys
import time
from collections.abc import Awaitable, Callable
from contextvars import ContextVar
from typing import Any, TextIO
from uuid import uuid4

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [request_id=%(request_id)s%(log_fields)s] %(message)s"

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")
log_fields_var: ContextVar[dict[str, Any]] = ContextVar("log_fields", default={})

logger = logging.getLogger(__name__)


def bind_log_fields(**fields: Any) -> None:
    """Attach fields to every log record for the rest of this request."""
    log_fields_var.set({**log_fields_var.get(), **fields})


class RequestContextFilter(logging.Filter):
    """Copies the request context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        fields = log_fields_var.get()
        record.log_fields = "".join(f" {k}={v}" for k, v in fields.items())
        return True


def configure_logging(level: str | int = logging.INFO, stream: TextIO | None = None) -> None:
    """Install a root handler that renders request context fields."""
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level if isinstance(level, int) else level.upper())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns a request ID and logs each request."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
        id_token = request_id_var.set(request_id)
        fields_token = log_fields_var.set({})
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("%s %s failed", request.method, request.url.path)
            raise
        else:
            latency_ms = (time.perf_counter() - start) * 1000
            logger.info(
                "%s %s -> %d (%.1fms)",
                request.method,
                request.url.path,
                response.status_code,
                latency_ms,
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            log_fields_var.reset(fields_token)
            request_id_var.reset(id_token)
