from __future__ import annotations

import json
import threading
import time
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

import httpx

from ..errors import GatewayError, GatewayErrorKind, SignatureError
from ..logging_config import get_logger
from ..metrics import track_provider_call, webhook_rejections_total
from ..settings import Settings
from .base import CaptureResult, OrderResult, OrderStatus, Provider, WebhookEvent
from .requests import PayPalOrderRequest
from .webhooks import parse_event

logger = get_logger(__name__)

ORDER_STATUSES = {
    "CREATED": OrderStatus.CREATED,
    "SAVED": OrderStatus.CREATED,
    "PAYER_ACTION_REQUIRED": OrderStatus.CREATED,
    "APPROVED": OrderStatus.APPROVED,
    "COMPLETED": OrderStatus.COMPLETED,
    "VOIDED": OrderStatus.DENIED,
    "DENIED": OrderStatus.DENIED,
}

TRANSMISSION_HEADERS = {
    "auth_algo": "paypal-auth-algo",
    "cert_url": "paypal-cert-url",
    "transmission_id": "paypal-transmission-id",
    "transmission_sig": "paypal-transmission-sig",
    "transmission_time": "paypal-transmission-time",
}

# refresh the access token this many seconds before PayPal expires it
TOKEN_EXPIRY_MARGIN_SECONDS = 60.0

MALFORMED_RESPONSE_MESSAGE = "Malformed PayPal response"


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"PayPal request failed with status {response.status_code}"
    if isinstance(body, dict):
        details = body.get("details")
        if isinstance(details, list) and details and isinstance(details[0], dict):
            issue = details[0].get("description") or details[0].get("issue")
            if issue:
                return str(issue)
        message = body.get("message") or body.get("error_description") or body.get("error")
        if message:
            return str(message)
    return f"PayPal request failed with status {response.status_code}"


def _order_result(data: dict[str, Any]) -> OrderResult:
    payer = data.get("payer") if isinstance(data.get("payer"), dict) else {}
    return OrderResult(
        order_id=str(data.get("id") or ""),
        status=ORDER_STATUSES.get(str(data.get("status") or "").upper(), OrderStatus.CREATED),
        payer_id=payer.get("payer_id"),
        links=data.get("links") or [],
        raw=data,
    )


def _first_capture(data: dict[str, Any]) -> dict[str, Any]:
    units = data.get("purchase_units") or [{}]
    if not isinstance(units[0], dict):
        return {}
    captures = (units[0].get("payments") or {}).get("captures") or [{}]
    return captures[0] if isinstance(captures[0], dict) else {}


class PayPalGateway:
    """Orders v2 and webhook verification against the PayPal REST API."""

    provider = Provider.PAYPAL

    def __init__(self, settings: Settings, *, transport: httpx.BaseTransport | None = None) -> None:
        self.client_id = (settings.PAYPAL_CLIENT_ID or "").strip()
        self.client_secret = (settings.PAYPAL_CLIENT_SECRET or "").strip()
        self.webhook_id = settings.PAYPAL_WEBHOOK_ID
        self.base_url = settings.paypal_base_url
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=settings.PROVIDER_TIMEOUT_SECONDS,
            transport=transport,
        )
        self._token: str | None = None
        self._token_expires_at = 0.0
        self._token_lock = threading.Lock()

    def close(self) -> None:
        self._client.close()

    def _json(self, response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            logger.error(
                "paypal_response_malformed",
                path=response.request.url.path,
                status=response.status_code,
                content_type=response.headers.get("content-type"),
            )
            raise GatewayError(self.provider.value, MALFORMED_RESPONSE_MESSAGE)
        return data

    def _access_token(self) -> str:
        if not self.client_id or not self.client_secret:
            raise GatewayError(
                self.provider.value,
                "PayPal credentials not found in environment variables",
                GatewayErrorKind.CONFIGURATION,
            )
        with self._token_lock:
            if self._token and time.monotonic() < self._token_expires_at:
                return self._token
            response = self._client.post(
                "/v1/oauth2/token",
                auth=(self.client_id, self.client_secret),
                data={"grant_type": "client_credentials"},
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            payload = self._json(response)
            token = payload.get("access_token")
            if not isinstance(token, str) or not token:
                raise GatewayError(self.provider.value, MALFORMED_RESPONSE_MESSAGE)
            try:
                ttl = float(payload.get("expires_in") or 0)
            except (TypeError, ValueError):
                ttl = 0.0
            self._token = token
            self._token_expires_at = time.monotonic() + max(0.0, ttl - TOKEN_EXPIRY_MARGIN_SECONDS)
            return self._token

    def _request(self, operation: str, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        started = time.perf_counter()
        try:
            token = self._access_token()
            headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
            headers.update(kwargs.pop("headers", {}))
            response = self._client.request(method, path, headers=headers, **kwargs)
            response.raise_for_status()
        except GatewayError as exc:
            track_provider_call(self.provider.value, operation, exc.kind.value, started)
            raise
        except httpx.TimeoutException as exc:
            track_provider_call(self.provider.value, operation, "timeout", started)
            raise GatewayError(
                self.provider.value, f"PayPal request timed out: {exc}", GatewayErrorKind.TIMEOUT
            ) from exc
        except httpx.HTTPStatusError as exc:
            track_provider_call(self.provider.value, operation, "provider", started)
            raise GatewayError(self.provider.value, _error_message(exc.response)) from exc
        except httpx.HTTPError as exc:
            track_provider_call(self.provider.value, operation, "provider", started)
            raise GatewayError(self.provider.value, str(exc) or type(exc).__name__) from exc
        if not response.content:
            track_provider_call(self.provider.value, operation, "ok", started)
            return {}
        try:
            data = self._json(response)
        except GatewayError:
            track_provider_call(self.provider.value, operation, "provider", started)
            raise
        track_provider_call(self.provider.value, operation, "ok", started)
        return data

    def create_intent(self, request: PayPalOrderRequest) -> OrderResult:
        data = self._request(
            "create_intent",
            "POST",
            "/v2/checkout/orders",
            json=request.body(),
            headers={"Prefer": "return=representation"},
        )
        result = _order_result(data)
        logger.info(
            "paypal_order_created",
            order_id=result.order_id,
            status=result.status.value,
            amount=f"{request.amount:.2f}",
            currency=request.currency,
        )
        return result

    def capture_or_fetch(self, resource_id: str, payer_id: str | None = None) -> CaptureResult:
        data = self._request(
            "capture_or_fetch",
            "POST",
            f"/v2/checkout/orders/{quote(resource_id, safe='')}/capture",
            json={},
            headers={"Prefer": "return=representation"},
        )
        capture = _first_capture(data)
        amount = capture.get("amount") or {}
        result = CaptureResult(
            provider=self.provider,
            resource_id=str(data.get("id") or resource_id),
            status=str(data.get("status") or ""),
            transaction_id=capture.get("id"),
            amount=amount.get("value"),
            currency=amount.get("currency_code"),
            payer=data.get("payer"),
            purchase_units=data.get("purchase_units") or [],
            raw=data,
        )
        logger.info(
            "paypal_order_captured",
            order_id=result.resource_id,
            status=result.status,
            transaction_id=result.transaction_id,
            amount=result.amount,
            currency=result.currency,
            payer_id=payer_id,
        )
        return result

    def get_status(self, resource_id: str) -> OrderResult:
        data = self._request("get_status", "GET", f"/v2/checkout/orders/{quote(resource_id, safe='')}")
        return _order_result(data)

    def verify_webhook(self, raw_body: bytes, headers: Mapping[str, str]) -> WebhookEvent:
        try:
            payload = json.loads(raw_body or b"{}")
        except ValueError:
            payload = None

        if not self.webhook_id:
            logger.warning("paypal_webhook_unverified", reason="PAYPAL_WEBHOOK_ID not configured")
            return parse_event(self.provider, payload)

        try:
            if not isinstance(payload, dict):
                raise SignatureError("Invalid payload: expected a JSON object")
            missing = [name for name in TRANSMISSION_HEADERS.values() if not headers.get(name)]
            if missing:
                raise SignatureError(f"Missing PayPal transmission headers: {', '.join(missing)}")
            body = {field: headers[name] for field, name in TRANSMISSION_HEADERS.items()}
            body["webhook_id"] = self.webhook_id
            body["webhook_event"] = payload
            verdict = self._request(
                "verify_webhook", "POST", "/v1/notifications/verify-webhook-signature", json=body
            )
            if verdict.get("verification_status") != "SUCCESS":
                raise SignatureError("PayPal webhook signature verification failed")
        except SignatureError:
            webhook_rejections_total.labels(provider=self.provider.value).inc()
            raise
        return parse_event(self.provider, payload)
