from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ...health import health_checker
from ...logging_config import get_logger
from ...metrics import get_metrics
from ...settings import Settings, get_settings
from ...utils import request_origin

router = APIRouter(tags=["health"])
logger = get_logger(__name__)

STATUS_ENDPOINTS = [
    "POST /api/stripe/payment-intent",
    "POST /api/paypal/create-order",
    "POST /api/paypal/execute-payment",
]


@router.get("/")
def status(request: Request, settings: Settings = Depends(get_settings)):
    """Service banner used by the mobile app to check reachability."""
    logger.info("status_check", origin=request_origin(request))
    return {
        "message": f"{settings.BRAND_NAME} - Payment Backend API",
        "status": "running",
        "timestamp": datetime.now(UTC).isoformat(),
        "cors": "enabled",
        "stripe_mode": settings.stripe_mode,
        "environment": settings.ENVIRONMENT,
        "endpoints": STATUS_ENDPOINTS,
    }


@router.get("/test")
def network_test(request: Request):
    """Echo request details for debugging device-to-backend connectivity."""
    return {
        "message": "Test endpoint working",
        "timestamp": datetime.now(UTC).isoformat(),
        "headers": dict(request.headers),
        "ip": request.client.host if request.client else None,
        "cors": "working",
    }


@router.get("/health")
def health(settings: Settings = Depends(get_settings)):
    body = health_checker.check_all(settings)
    status_code = 200 if body["status"] == "healthy" else 503
    return JSONResponse(content=body, status_code=status_code)


@router.get("/metrics", include_in_schema=False)
def metrics():
    return get_metrics()
