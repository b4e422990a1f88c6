"""Map provider webhook events onto internal event kinds."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..logging_config import get_logger
from ..metrics import webhook_events_total
from .base import Provider, WebhookEvent, WebhookEventKind

logger = get_logger(__name__)

EVENT_KINDS: dict[Provider, dict[str, WebhookEventKind]] = {
    Provider.STRIPE: {
        "payment_intent.succeeded": WebhookEventKind.PAYMENT_SUCCEEDED,
        "payment_intent.payment_failed": WebhookEventKind.PAYMENT_FAILED,
    },
    Provider.PAYPAL: {
        "CHECKOUT.ORDER.APPROVED": WebhookEventKind.ORDER_APPROVED,
        "PAYMENT.CAPTURE.COMPLETED": WebhookEventKind.ORDER_COMPLETED,
        "PAYMENT.CAPTURE.DENIED": WebhookEventKind.ORDER_DENIED,
    },
}


def classify_event(provider: Provider, event_type: Any) -> WebhookEventKind:
    """Total mapping: anything not in the table is `unhandled`."""
    if not isinstance(event_type, str):
        return WebhookEventKind.UNHANDLED
    return EVENT_KINDS[provider].get(event_type, WebhookEventKind.UNHANDLED)


def _resource_id(provider: Provider, payload: Mapping[str, Any]) -> str:
    if provider is Provider.STRIPE:
        data = payload.get("data")
        obj = data.get("object") if isinstance(data, Mapping) else None
    else:
        obj = payload.get("resource")
    if isinstance(obj, Mapping):
        return str(obj.get("id") or "")
    return ""


def parse_event(provider: Provider, payload: Any) -> WebhookEvent:
    if not isinstance(payload, Mapping):
        payload = {}
    type_field = "type" if provider is Provider.STRIPE else "event_type"
    event_type = payload.get(type_field)
    return WebhookEvent(
        provider=provider,
        kind=classify_event(provider, event_type),
        event_type=str(event_type) if event_type is not None else "",
        resource_id=_resource_id(provider, payload),
        raw=dict(payload),
    )


def handle_event(event: WebhookEvent) -> None:
    """Record an accepted event. Unknown kinds are logged and otherwise ignored."""
    webhook_events_total.labels(provider=event.provider.value, kind=event.kind.value).inc()
    fields = {
        "provider": event.provider.value,
        "event_type": event.event_type,
        "resource_id": event.resource_id,
    }
    if event.kind is WebhookEventKind.UNHANDLED:
        logger.info("webhook_unhandled", **fields)
    elif event.kind in (WebhookEventKind.PAYMENT_FAILED, WebhookEventKind.ORDER_DENIED):
        logger.warning(f"webhook_{event.kind.value}", **fields)
    else:
        logger.info(f"webhook_{event.kind.value}", **fields)


__all__ = ["EVENT_KINDS", "classify_event", "handle_event", "parse_event"]
