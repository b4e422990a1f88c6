from __future__ import annotations

import logging
from uuid import uuid4

from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from .logging_config import get_logger, request_id_ctx
from .settings import Settings

request_logger = get_logger("paybridge.requests")


def add_cors(app, settings: Settings):
    origins = settings.allow_origins
    if not origins and not settings.CORS_ALLOW_ORIGIN_REGEX:
        return
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_origin_regex=settings.CORS_ALLOW_ORIGIN_REGEX or None,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "Accept", "Origin"],
    )


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add request ID tracing.

    - Generates UUID for each request or uses existing X-Request-ID header
    - Adds X-Request-ID to response headers
    - Sets request ID in context variable so log records carry it
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get("X-Request-ID")
        if not request_id:
            request_id = str(uuid4())

        request_id_ctx.set(request_id)
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class RequestIDLogFilter(logging.Filter):
    """Logging filter that adds request ID to stdlib log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        request_id = request_id_ctx.get("")
        record.request_id = request_id if request_id else "-"  # type: ignore[attr-defined]
        return True


class RequestLogMiddleware(BaseHTTPMiddleware):
    """Log every inbound request with its origin, then its outcome."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_logger.info(
            "request_received",
            method=request.method,
            path=request.url.path,
            origin=request_origin(request),
        )
        response = await call_next(request)
        request_logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
        )
        return response


def add_request_id_tracing(app):
    """Add request ID middleware and configure logging."""
    app.add_middleware(RequestIDMiddleware)
    logging.getLogger().addFilter(RequestIDLogFilter())


def add_request_logging(app):
    app.add_middleware(RequestLogMiddleware)


def get_request_id() -> str:
    """Get the current request ID from context."""
    return request_id_ctx.get("")


def request_origin(request: Request) -> str:
    return request.headers.get("origin") or "unknown"
