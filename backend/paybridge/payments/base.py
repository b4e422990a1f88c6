from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel, Field


class Provider(str, Enum):
    STRIPE = "stripe"
    PAYPAL = "paypal"


class IntentStatus(str, Enum):
    REQUIRES_ACTION = "requires_action"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    PENDING = "pending"


class OrderStatus(str, Enum):
    CREATED = "CREATED"
    APPROVED = "APPROVED"
    COMPLETED = "COMPLETED"
    DENIED = "DENIED"


class WebhookEventKind(str, Enum):
    PAYMENT_SUCCEEDED = "payment_succeeded"
    PAYMENT_FAILED = "payment_failed"
    ORDER_APPROVED = "order_approved"
    ORDER_COMPLETED = "order_completed"
    ORDER_DENIED = "order_denied"
    UNHANDLED = "unhandled"


class ValidatedAmount(BaseModel):
    """Amount that passed provider bounds: minor units for Stripe, major units for PayPal."""

    provider: Provider
    value: int | Decimal


class PaymentIntentResult(BaseModel):
    provider_intent_id: str
    client_secret: str | None = None
    status: IntentStatus
    amount: int | None = None
    currency: str | None = None


class OrderResult(BaseModel):
    order_id: str
    status: OrderStatus
    payer_id: str | None = None
    links: list[dict[str, Any]] = Field(default_factory=list)
    raw: dict[str, Any] = Field(default_factory=dict)


class CaptureResult(BaseModel):
    provider: Provider
    resource_id: str
    status: str
    transaction_id: str | None = None
    amount: str | None = None
    currency: str | None = None
    payer: dict[str, Any] | None = None
    purchase_units: list[dict[str, Any]] = Field(default_factory=list)
    raw: dict[str, Any] = Field(default_factory=dict)


class WebhookEvent(BaseModel):
    provider: Provider
    kind: WebhookEventKind
    event_type: str
    resource_id: str = ""
    raw: dict[str, Any] = Field(default_factory=dict)


class ProviderGateway(Protocol):
    provider: Provider

    def create_intent(self, request: Any) -> PaymentIntentResult | OrderResult: ...

    def capture_or_fetch(
        self, resource_id: str, payer_id: str | None = None
    ) -> CaptureResult: ...

    def get_status(self, resource_id: str) -> PaymentIntentResult | OrderResult: ...

    def verify_webhook(self, raw_body: bytes, headers: Mapping[str, str]) -> WebhookEvent: ...
