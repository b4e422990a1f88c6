import hashlib
import hmac
import os
import sys
import time
from collections.abc import Mapping
from pathlib import Path

import pytest
import sentry_sdk
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Disable outbound Sentry calls during tests
sentry_sdk.init = lambda *args, **kwargs: None  # type: ignore[assignment]
os.environ["SENTRY_DSN"] = ""
os.environ["ENVIRONMENT"] = "test"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_paybridge"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_paybridge"
os.environ["PAYPAL_CLIENT_ID"] = "paypal-client"
os.environ["PAYPAL_CLIENT_SECRET"] = "paypal-secret"
os.environ["FRONTEND_URL"] = "https://donate.example.org"
os.environ.pop("PAYPAL_WEBHOOK_ID", None)

from backend.paybridge.errors import GatewayError  # noqa: E402
from backend.paybridge.main import app  # noqa: E402
from backend.paybridge.payments.base import (  # noqa: E402
    CaptureResult,
    IntentStatus,
    OrderResult,
    OrderStatus,
    PaymentIntentResult,
    Provider,
    WebhookEvent,
)
from backend.paybridge.payments.factory import (  # noqa: E402
    get_paypal_gateway,
    get_stripe_gateway,
    reset_gateways,
)
from backend.paybridge.settings import Settings, get_settings  # noqa: E402

WEBHOOK_SECRET = "whsec_test_paybridge"


def stripe_signature(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header the way Stripe signs webhook deliveries."""
    ts = int(time.time()) if timestamp is None else timestamp
    signed = f"{ts}.".encode() + payload
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


class StubStripeGateway:
    """Records intent requests and answers like the Stripe SDK would."""

    provider = Provider.STRIPE

    def __init__(self, error: GatewayError | None = None) -> None:
        self.error = error
        self.requests = []

    def create_intent(self, request):
        self.requests.append(request)
        if self.error:
            raise self.error
        intent_id = f"pi_stub_{len(self.requests)}"
        return PaymentIntentResult(
            provider_intent_id=intent_id,
            client_secret=f"{intent_id}_secret_stub",
            status=IntentStatus.REQUIRES_ACTION,
            amount=request.amount,
            currency=request.currency,
        )

    def get_status(self, resource_id: str):
        if self.error:
            raise self.error
        return PaymentIntentResult(
            provider_intent_id=resource_id,
            status=IntentStatus.SUCCEEDED,
            amount=1000,
            currency="usd",
        )

    def capture_or_fetch(self, resource_id: str, payer_id: str | None = None):
        raise NotImplementedError

    def verify_webhook(self, raw_body: bytes, headers: Mapping[str, str]) -> WebhookEvent:
        raise NotImplementedError


class StubPayPalGateway:
    provider = Provider.PAYPAL

    def __init__(self, error: GatewayError | None = None) -> None:
        self.error = error
        self.requests = []
        self.captures = []

    def create_intent(self, request):
        self.requests.append(request)
        if self.error:
            raise self.error
        return OrderResult(
            order_id="5O190127TN364715T",
            status=OrderStatus.CREATED,
            links=[{"href": "https://www.sandbox.paypal.com/checkoutnow?token=5O190127TN364715T", "rel": "approve"}],
        )

    def capture_or_fetch(self, resource_id: str, payer_id: str | None = None):
        self.captures.append((resource_id, payer_id))
        if self.error:
            raise self.error
        return CaptureResult(
            provider=Provider.PAYPAL,
            resource_id=resource_id,
            status="COMPLETED",
            transaction_id="3C679366HH908993F",
            amount="25.00",
            currency="USD",
            payer={"payer_id": payer_id} if payer_id else None,
        )

    def get_status(self, resource_id: str):
        if self.error:
            raise self.error
        return OrderResult(
            order_id=resource_id,
            status=OrderStatus.APPROVED,
            raw={"id": resource_id, "status": "APPROVED"},
        )

    def verify_webhook(self, raw_body: bytes, headers: Mapping[str, str]) -> WebhookEvent:
        raise NotImplementedError


@pytest.fixture(scope="session")
def client() -> TestClient:
    return TestClient(app, base_url="http://api.testserver")


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture(autouse=True)
def clean_overrides():
    saved = dict(app.dependency_overrides)
    reset_gateways()
    yield
    app.dependency_overrides.clear()
    app.dependency_overrides.update(saved)
    reset_gateways()


@pytest.fixture
def sign_stripe():
    return stripe_signature


@pytest.fixture
def stripe_stub() -> StubStripeGateway:
    stub = StubStripeGateway()
    app.dependency_overrides[get_stripe_gateway] = lambda: stub
    return stub


@pytest.fixture
def paypal_stub() -> StubPayPalGateway:
    stub = StubPayPalGateway()
    app.dependency_overrides[get_paypal_gateway] = lambda: stub
    return stub
