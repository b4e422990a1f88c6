from contextlib import asynccontextmanager

import sentry_sdk
import uvicorn
from fastapi import FastAPI
from sentry_sdk.integrations.fastapi import FastApiIntegration

from .api.routes import health as health_routes
from .api.routes import paypal as paypal_routes
from .api.routes import stripe as stripe_routes
from .errors import register_exception_handlers
from .logging_config import SERVICE_VERSION, configure_structlog, get_logger
from .metrics import PrometheusMiddleware
from .payments.factory import reset_gateways
from .settings import Settings, get_settings
from .utils import add_cors, add_request_id_tracing, add_request_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    reset_gateways()
    logger.info("payment_backend_stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    if not settings.STRIPE_SECRET_KEY.strip():
        raise RuntimeError("STRIPE_SECRET_KEY must be set before starting the payment backend")

    # Configure structured logging (must be done before any logging calls)
    configure_structlog(json_logs=not settings.DEBUG)

    if settings.SENTRY_DSN:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.SENTRY_ENVIRONMENT,
            release=settings.SENTRY_RELEASE or f"paybridge@{SERVICE_VERSION}",
            integrations=[FastApiIntegration()],
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        )

    app = FastAPI(
        title="Donation Payment Backend",
        version=SERVICE_VERSION,
        description="Stripe and PayPal bridge for the donation app",
        lifespan=lifespan,
    )
    # every route receives this configuration through Depends(get_settings)
    app.dependency_overrides[get_settings] = lambda: settings
    add_cors(app, settings)
    add_request_id_tracing(app)
    add_request_logging(app)
    app.add_middleware(PrometheusMiddleware)
    register_exception_handlers(app, show_details=settings.ENVIRONMENT == "development")

    app.include_router(health_routes.router)
    app.include_router(stripe_routes.router)
    app.include_router(paypal_routes.router)

    if not settings.paypal_configured:
        logger.warning("paypal_not_configured")
    if not settings.PAYPAL_WEBHOOK_ID:
        logger.warning("paypal_webhook_verification_disabled")
    logger.info(
        "payment_backend_ready",
        stripe_mode=settings.stripe_mode,
        environment=settings.ENVIRONMENT,
        port=settings.PORT,
    )
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_config=None)
