"""Request tracing and structured request logging."""

from __future__ import annotations

import time
import uuid
from typing import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
  async def dispatch(self, request: Request, call_next: Callable) -> Response:
    request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


class LoggingMiddleware(BaseHTTPMiddleware):
  async def dispatch(self, request: Request, call_next: Callable) -> Response:
    start = time.perf_counter()
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
      request_id=getattr(request.state, "request_id", "unknown"),
      method=request.method,
      path=request.url.path,
    )
    logger.info("request_started")
    try:
      response = await call_next(request)
    except Exception as exc:
      logger.exception("request_failed", error=str(exc), duration_ms=round((time.perf_counter() - start) * 1000, 2))
      raise
    elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
    logger.info("request_completed", status_code=response.status_code, duration_ms=elapsed_ms)
    response.headers["X-Process-Time"] = str(elapsed_ms)
    return response
