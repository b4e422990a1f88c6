"""Prometheus metrics for monitoring and observability."""

from __future__ import annotations

import re
import time
from collections.abc import Callable
from functools import lru_cache

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# ==============================================================================
# APPLICATION INFO
# ==============================================================================

app_info = Info("paybridge", "Donation payment bridge information")
app_info.info({"version": "1.0.0", "service": "paybridge"})

# ==============================================================================
# HTTP METRICS
# ==============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "HTTP requests currently in progress",
    ["method", "endpoint"],
)

# ==============================================================================
# PROVIDER METRICS
# ==============================================================================

provider_calls_total = Counter(
    "provider_calls_total",
    "Outbound calls to payment providers",
    ["provider", "operation", "outcome"],
)

provider_call_duration_seconds = Histogram(
    "provider_call_duration_seconds",
    "Payment provider call duration in seconds",
    ["provider", "operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0, 30.0),
)

webhook_events_total = Counter(
    "webhook_events_total",
    "Webhook events accepted, by internal kind",
    ["provider", "kind"],
)

webhook_rejections_total = Counter(
    "webhook_rejections_total",
    "Webhook deliveries rejected by signature verification",
    ["provider"],
)

amount_rejections_total = Counter(
    "amount_rejections_total",
    "Donation amounts rejected by validation",
    ["provider", "reason"],
)

# ==============================================================================
# HELPER FUNCTIONS
# ==============================================================================


def track_provider_call(provider: str, operation: str, outcome: str, started: float) -> None:
    """Record one provider call; `started` is a time.perf_counter() reading."""
    provider_calls_total.labels(provider=provider, operation=operation, outcome=outcome).inc()
    provider_call_duration_seconds.labels(provider=provider, operation=operation).observe(
        time.perf_counter() - started
    )


@lru_cache(maxsize=2048)
def normalize_endpoint(path: str) -> str:
    """
    Normalize endpoint path to reduce cardinality.

    Examples:
        /api/paypal/order/5O190127TN364715T -> /api/paypal/order/{id}
        /api/stripe/payment-intent/pi_3N... -> /api/stripe/payment-intent/{id}
    """
    path = re.sub(r"/(pi|ch|evt|cus)_[A-Za-z0-9_]+", "/{id}", path)
    path = re.sub(r"/[A-Z0-9]{17}(?=/|$)", "/{id}", path)
    path = re.sub(r"/(?=[a-zA-Z_-]*\d)[a-zA-Z0-9_-]{20,}", "/{id}", path)
    path = re.sub(r"/\d+(?=/|$)", "/{id}", path)
    return path


# ==============================================================================
# PROMETHEUS MIDDLEWARE
# ==============================================================================


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to track HTTP request metrics."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        endpoint = normalize_endpoint(request.url.path)
        http_requests_in_progress.labels(method=method, endpoint=endpoint).inc()
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception:
            http_requests_total.labels(method=method, endpoint=endpoint, status="500").inc()
            raise
        finally:
            duration = time.time() - start_time
            http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)
            http_requests_in_progress.labels(method=method, endpoint=endpoint).dec()

        http_requests_total.labels(
            method=method, endpoint=endpoint, status=str(response.status_code)
        ).inc()
        return response


def get_metrics() -> Response:
    """Generate Prometheus metrics response."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "PrometheusMiddleware",
    "amount_rejections_total",
    "get_metrics",
    "normalize_endpoint",
    "track_provider_call",
    "webhook_events_total",
    "webhook_rejections_total",
]
