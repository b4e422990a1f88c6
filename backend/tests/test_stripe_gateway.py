"""Tests for the Stripe gateway: intent calls and webhook signature checks."""

from __future__ import annotations

import json
import time
from types import SimpleNamespace

import pytest
import requests
import stripe
from backend.paybridge.errors import GatewayError, GatewayErrorKind, SignatureError
from backend.paybridge.payments.amounts import validate_amount
from backend.paybridge.payments.base import IntentStatus, Provider, WebhookEventKind
from backend.paybridge.payments.requests import build_stripe_intent_request
from backend.paybridge.payments.stripe_gateway import StripeGateway
from backend.paybridge.settings import Settings

SECRET = "whsec_gateway_tests"


@pytest.fixture
def cfg() -> Settings:
    return Settings(STRIPE_SECRET_KEY="sk_test_gateway", STRIPE_WEBHOOK_SECRET=SECRET)


@pytest.fixture
def gateway(cfg) -> StripeGateway:
    return StripeGateway(cfg)


def _intent(**overrides):
    fields = {
        "id": "pi_123",
        "client_secret": "pi_123_secret_abc",
        "status": "requires_payment_method",
        "amount": 1000,
        "currency": "usd",
        "latest_charge": None,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


class TestCreateIntent:
    def test_single_sdk_call_with_built_params(self, gateway, cfg, monkeypatch):
        calls = []

        def fake_create(**params):
            calls.append(params)
            return _intent(amount=params["amount"])

        monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)
        amount = validate_amount(1000, Provider.STRIPE, cfg)
        request = build_stripe_intent_request(amount, "usd", {"source": "test"}, None, cfg)

        result = gateway.create_intent(request)

        assert len(calls) == 1
        assert calls[0]["api_key"] == "sk_test_gateway"
        assert calls[0]["amount"] == 1000
        assert calls[0]["automatic_payment_methods"] == {"enabled": True}
        assert calls[0]["metadata"]["source"] == "test"
        assert result.provider_intent_id == "pi_123"
        assert result.client_secret == "pi_123_secret_abc"
        assert result.amount == 1000
        assert result.status is IntentStatus.REQUIRES_ACTION

    def test_provider_error_is_wrapped_not_retried(self, gateway, cfg, monkeypatch):
        calls = []

        def fake_create(**params):
            calls.append(params)
            raise stripe.InvalidRequestError("Invalid currency: xyz", "currency")

        monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)
        request = build_stripe_intent_request(
            validate_amount(1000, Provider.STRIPE, cfg), "xyz", None, None, cfg
        )

        with pytest.raises(GatewayError) as exc_info:
            gateway.create_intent(request)

        assert len(calls) == 1
        assert exc_info.value.provider == "stripe"
        assert exc_info.value.kind is GatewayErrorKind.PROVIDER
        assert "Invalid currency" in exc_info.value.message

    def test_timeout_is_reported_as_timeout(self, gateway, cfg, monkeypatch):
        def fake_create(**params):
            raise stripe.APIConnectionError("Request to Stripe timed out")

        monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)
        request = build_stripe_intent_request(
            validate_amount(1000, Provider.STRIPE, cfg), "usd", None, None, cfg
        )

        with pytest.raises(GatewayError) as exc_info:
            gateway.create_intent(request)
        assert exc_info.value.kind is GatewayErrorKind.TIMEOUT

    def test_timeout_detected_from_chained_cause(self, gateway, cfg, monkeypatch):
        def fake_create(**params):
            try:
                raise requests.exceptions.ReadTimeout("read")
            except requests.exceptions.ReadTimeout as exc:
                raise stripe.APIConnectionError("Unexpected error communicating with Stripe.") from exc

        monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)
        request = build_stripe_intent_request(
            validate_amount(1000, Provider.STRIPE, cfg), "usd", None, None, cfg
        )
        with pytest.raises(GatewayError) as exc_info:
            gateway.create_intent(request)
        assert exc_info.value.kind is GatewayErrorKind.TIMEOUT

    def test_connection_refused_is_provider_error(self, gateway, cfg, monkeypatch):
        def fake_create(**params):
            try:
                raise requests.exceptions.ConnectionError("refused")
            except requests.exceptions.ConnectionError as exc:
                raise stripe.APIConnectionError("Unexpected error communicating with Stripe.") from exc

        monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)
        request = build_stripe_intent_request(
            validate_amount(1000, Provider.STRIPE, cfg), "usd", None, None, cfg
        )
        with pytest.raises(GatewayError) as exc_info:
            gateway.create_intent(request)
        assert exc_info.value.kind is GatewayErrorKind.PROVIDER

    def test_missing_key_is_configuration_error(self, cfg, monkeypatch):
        gateway = StripeGateway(cfg.model_copy(update={"STRIPE_SECRET_KEY": ""}))
        monkeypatch.setattr(stripe.PaymentIntent, "create", lambda **_: pytest.fail("SDK called"))
        request = build_stripe_intent_request(
            validate_amount(1000, Provider.STRIPE, cfg), "usd", None, None, cfg
        )
        with pytest.raises(GatewayError) as exc_info:
            gateway.create_intent(request)
        assert exc_info.value.kind is GatewayErrorKind.CONFIGURATION


class TestFetch:
    @pytest.mark.parametrize(
        "stripe_status,expected",
        [
            ("succeeded", IntentStatus.SUCCEEDED),
            ("canceled", IntentStatus.FAILED),
            ("requires_action", IntentStatus.REQUIRES_ACTION),
            ("processing", IntentStatus.PENDING),
            ("something_new", IntentStatus.PENDING),
        ],
    )
    def test_status_mapping(self, gateway, monkeypatch, stripe_status, expected):
        monkeypatch.setattr(
            stripe.PaymentIntent, "retrieve", lambda intent_id, **_: _intent(id=intent_id, status=stripe_status)
        )
        result = gateway.get_status("pi_999")
        assert result.provider_intent_id == "pi_999"
        assert result.status is expected

    def test_capture_or_fetch_reads_intent(self, gateway, monkeypatch):
        monkeypatch.setattr(
            stripe.PaymentIntent,
            "retrieve",
            lambda intent_id, **_: _intent(id=intent_id, status="succeeded", latest_charge="ch_1"),
        )
        capture = gateway.capture_or_fetch("pi_777")
        assert capture.resource_id == "pi_777"
        assert capture.status == "succeeded"
        assert capture.transaction_id == "ch_1"
        assert capture.amount == "1000"


class TestVerifyWebhook:
    def _payload(self, event_type="payment_intent.succeeded") -> bytes:
        return json.dumps(
            {
                "id": "evt_1",
                "object": "event",
                "type": event_type,
                "data": {"object": {"id": "pi_123", "object": "payment_intent"}},
            }
        ).encode()

    def test_valid_signature(self, gateway, sign_stripe):
        payload = self._payload()
        event = gateway.verify_webhook(payload, {"stripe-signature": sign_stripe(payload, SECRET)})
        assert event.kind is WebhookEventKind.PAYMENT_SUCCEEDED
        assert event.resource_id == "pi_123"

    def test_valid_signature_unknown_type(self, gateway, sign_stripe):
        payload = self._payload("customer.created")
        event = gateway.verify_webhook(payload, {"stripe-signature": sign_stripe(payload, SECRET)})
        assert event.kind is WebhookEventKind.UNHANDLED

    @pytest.mark.parametrize(
        "event_type", ["payment_intent.succeeded", "payment_intent.payment_failed", "anything"]
    )
    def test_tampered_body_fails_regardless_of_type(self, gateway, sign_stripe, event_type):
        signed = self._payload(event_type)
        tampered = signed.replace(b"pi_123", b"pi_666")
        with pytest.raises(SignatureError):
            gateway.verify_webhook(tampered, {"stripe-signature": sign_stripe(signed, SECRET)})

    def test_wrong_secret(self, gateway, sign_stripe):
        payload = self._payload()
        with pytest.raises(SignatureError):
            gateway.verify_webhook(payload, {"stripe-signature": sign_stripe(payload, "whsec_other")})

    def test_stale_timestamp(self, gateway, sign_stripe):
        payload = self._payload()
        header = sign_stripe(payload, SECRET, timestamp=int(time.time()) - 3600)
        with pytest.raises(SignatureError):
            gateway.verify_webhook(payload, {"stripe-signature": header})

    def test_garbage_header(self, gateway):
        with pytest.raises(SignatureError):
            gateway.verify_webhook(self._payload(), {"stripe-signature": "not-a-signature"})

    def test_missing_header(self, gateway):
        with pytest.raises(SignatureError):
            gateway.verify_webhook(self._payload(), {})

    def test_missing_secret_fails_closed(self, cfg, sign_stripe):
        gateway = StripeGateway(cfg.model_copy(update={"STRIPE_WEBHOOK_SECRET": None}))
        payload = self._payload()
        with pytest.raises(SignatureError):
            gateway.verify_webhook(payload, {"stripe-signature": sign_stripe(payload, SECRET)})
