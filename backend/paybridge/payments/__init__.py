"""Provider gateways for Stripe payment intents and PayPal orders."""

from .base import (
    CaptureResult,
    OrderResult,
    PaymentIntentResult,
    Provider,
    ProviderGateway,
    WebhookEvent,
    WebhookEventKind,
)
from .factory import get_paypal_gateway, get_stripe_gateway

__all__ = [
    "CaptureResult",
    "OrderResult",
    "PaymentIntentResult",
    "Provider",
    "ProviderGateway",
    "WebhookEvent",
    "WebhookEventKind",
    "get_paypal_gateway",
    "get_stripe_gateway",
]
