"""Error taxonomy for the payment bridge and the HTTP envelopes it maps to."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .logging_config import get_logger

logger = get_logger(__name__)

AVAILABLE_ENDPOINTS = [
    "GET /",
    "GET /test",
    "GET /health",
    "POST /create-payment-intent",
    "POST /api/stripe/payment-intent",
    "GET /api/stripe/payment-intent/{id}",
    "POST /api/paypal/create-order",
    "POST /api/paypal/execute-payment",
    "GET /api/paypal/order/{orderId}",
    "POST /webhook",
    "POST /api/paypal/webhook",
]


class PaymentBridgeError(Exception):
    """Base class for errors raised by the payment bridge."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationReason(str, Enum):
    MISSING = "missing"
    BELOW_MINIMUM = "below_minimum"
    ABOVE_MAXIMUM = "above_maximum"
    INVALID_CURRENCY = "invalid_currency"
    INVALID_REQUEST = "invalid_request"


class ValidationError(PaymentBridgeError):
    """Client input rejected before any provider call."""

    def __init__(self, reason: ValidationReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason


class GatewayErrorKind(str, Enum):
    PROVIDER = "provider"
    TIMEOUT = "timeout"
    CONFIGURATION = "configuration"


class GatewayError(PaymentBridgeError):
    """A provider call failed. Never retried."""

    def __init__(
        self,
        provider: str,
        message: str,
        kind: GatewayErrorKind = GatewayErrorKind.PROVIDER,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.kind = kind


class SignatureError(PaymentBridgeError):
    """A webhook payload failed verification."""


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    logger.info("request_rejected", path=request.url.path, reason=exc.reason.value)
    return JSONResponse(status_code=400, content={"error": exc.message})


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.info("request_body_invalid", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    logger.error(
        "provider_call_failed",
        provider=exc.provider,
        kind=exc.kind.value,
        error=exc.message,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=500,
        content={"error": exc.message, "type": f"{exc.provider}_error", "kind": exc.kind.value},
    )


async def signature_error_handler(request: Request, exc: SignatureError) -> PlainTextResponse:
    logger.warning("webhook_signature_rejected", path=request.url.path, error=exc.message)
    return PlainTextResponse(status_code=400, content=f"Webhook Error: {exc.message}")


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        logger.info("route_not_found", method=request.method, url=str(request.url.path))
        return JSONResponse(
            status_code=404,
            content={
                "error": "Endpoint not found",
                "method": request.method,
                "url": request.url.path,
                "available_endpoints": AVAILABLE_ENDPOINTS,
                "timestamp": _timestamp(),
            },
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def _unhandled_error_handler(show_details: bool):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_error", method=request.method, url=request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "message": str(exc) if show_details else "Something went wrong",
                "timestamp": _timestamp(),
            },
        )

    return handler


def register_exception_handlers(app: FastAPI, *, show_details: bool = False) -> None:
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(SignatureError, signature_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler(show_details))


__all__ = [
    "AVAILABLE_ENDPOINTS",
    "GatewayError",
    "GatewayErrorKind",
    "PaymentBridgeError",
    "SignatureError",
    "ValidationError",
    "ValidationReason",
    "register_exception_handlers",
]
