from __future__ import annotations

import json
import time
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

import requests
import stripe

from ..errors import GatewayError, GatewayErrorKind, SignatureError
from ..logging_config import get_logger
from ..metrics import track_provider_call, webhook_rejections_total
from ..settings import Settings
from .base import CaptureResult, IntentStatus, PaymentIntentResult, Provider, WebhookEvent
from .requests import StripeIntentRequest
from .webhooks import parse_event

logger = get_logger(__name__)

T = TypeVar("T")

INTENT_STATUSES = {
    "succeeded": IntentStatus.SUCCEEDED,
    "canceled": IntentStatus.FAILED,
    "requires_payment_method": IntentStatus.REQUIRES_ACTION,
    "requires_confirmation": IntentStatus.REQUIRES_ACTION,
    "requires_action": IntentStatus.REQUIRES_ACTION,
    "processing": IntentStatus.PENDING,
    "requires_capture": IntentStatus.PENDING,
}


def _is_timeout(exc: stripe.StripeError) -> bool:
    if not isinstance(exc, stripe.APIConnectionError):
        return False
    # RequestsClient raises APIConnectionError while handling the requests exception
    cause = exc.__cause__ or exc.__context__
    if isinstance(cause, requests.exceptions.Timeout | TimeoutError):
        return True
    text = str(exc).lower()
    return "timed out" in text or "timeout" in text


def _intent_result(intent: Any) -> PaymentIntentResult:
    return PaymentIntentResult(
        provider_intent_id=intent.id,
        client_secret=getattr(intent, "client_secret", None),
        status=INTENT_STATUSES.get(getattr(intent, "status", ""), IntentStatus.PENDING),
        amount=getattr(intent, "amount", None),
        currency=getattr(intent, "currency", None),
    )


class StripeGateway:
    """Payment intents and webhook verification through the Stripe SDK."""

    provider = Provider.STRIPE

    def __init__(self, settings: Settings) -> None:
        self.api_key = settings.STRIPE_SECRET_KEY
        self.webhook_secret = settings.STRIPE_WEBHOOK_SECRET
        # The SDK's transport is process-wide; no retries, bounded deadline.
        stripe.max_network_retries = 0
        stripe.default_http_client = stripe.RequestsClient(
            timeout=settings.PROVIDER_TIMEOUT_SECONDS
        )

    def _call(self, operation: str, fn: Callable[[], T]) -> T:
        if not self.api_key:
            raise GatewayError(
                self.provider.value,
                "Stripe secret key is not configured",
                GatewayErrorKind.CONFIGURATION,
            )
        started = time.perf_counter()
        try:
            result = fn()
        except stripe.StripeError as exc:
            kind = GatewayErrorKind.TIMEOUT if _is_timeout(exc) else GatewayErrorKind.PROVIDER
            track_provider_call(self.provider.value, operation, kind.value, started)
            message = getattr(exc, "user_message", None) or str(exc)
            raise GatewayError(self.provider.value, message, kind) from exc
        track_provider_call(self.provider.value, operation, "ok", started)
        return result

    def create_intent(self, request: StripeIntentRequest) -> PaymentIntentResult:
        intent = self._call(
            "create_intent",
            lambda: stripe.PaymentIntent.create(api_key=self.api_key, **request.params()),
        )
        result = _intent_result(intent)
        logger.info(
            "payment_intent_created",
            payment_intent_id=result.provider_intent_id,
            amount=request.amount,
            currency=request.currency,
        )
        return result

    def get_status(self, resource_id: str) -> PaymentIntentResult:
        intent = self._call(
            "get_status",
            lambda: stripe.PaymentIntent.retrieve(resource_id, api_key=self.api_key),
        )
        return _intent_result(intent)

    def capture_or_fetch(self, resource_id: str, payer_id: str | None = None) -> CaptureResult:
        """Stripe captures automatically; this reads the intent state."""
        intent = self._call(
            "capture_or_fetch",
            lambda: stripe.PaymentIntent.retrieve(resource_id, api_key=self.api_key),
        )
        amount = getattr(intent, "amount", None)
        return CaptureResult(
            provider=self.provider,
            resource_id=intent.id,
            status=getattr(intent, "status", "") or "",
            transaction_id=getattr(intent, "latest_charge", None),
            amount=str(amount) if amount is not None else None,
            currency=getattr(intent, "currency", None),
        )

    def verify_webhook(self, raw_body: bytes, headers: Mapping[str, str]) -> WebhookEvent:
        signature = headers.get("stripe-signature")
        try:
            if not self.webhook_secret:
                raise SignatureError("Webhook signing secret is not configured")
            if not signature:
                raise SignatureError("No stripe-signature header value was provided")
            try:
                stripe.Webhook.construct_event(raw_body, signature, self.webhook_secret)
            except stripe.SignatureVerificationError as exc:
                raise SignatureError(str(exc)) from exc
            except ValueError as exc:
                raise SignatureError(f"Invalid payload: {exc}") from exc
        except SignatureError:
            webhook_rejections_total.labels(provider=self.provider.value).inc()
            raise
        return parse_event(self.provider, json.loads(raw_body))
