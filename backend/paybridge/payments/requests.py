"""Build provider-specific charge/order requests from validated donation input."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from ..logging_config import get_logger
from ..settings import Settings
from .amounts import normalize_currency
from .base import Provider, ValidatedAmount

logger = get_logger(__name__)

FIXED_METADATA_KEYS = ("app", "type", "origin")


@dataclass(slots=True, frozen=True)
class StripeIntentRequest:
    amount: int
    currency: str
    metadata: dict[str, str]
    automatic_payment_methods: dict[str, bool] = field(
        default_factory=lambda: {"enabled": True}
    )

    def params(self) -> dict[str, Any]:
        return {
            "amount": self.amount,
            "currency": self.currency,
            "metadata": dict(self.metadata),
            "automatic_payment_methods": dict(self.automatic_payment_methods),
        }


@dataclass(slots=True, frozen=True)
class PayPalOrderRequest:
    amount: Decimal
    currency: str
    return_url: str
    cancel_url: str
    brand_name: str
    description: str

    def body(self) -> dict[str, Any]:
        return {
            "intent": "CAPTURE",
            "application_context": {
                "return_url": self.return_url,
                "cancel_url": self.cancel_url,
                "brand_name": self.brand_name,
                "user_action": "PAY_NOW",
            },
            "purchase_units": [
                {
                    "amount": {
                        "currency_code": self.currency,
                        "value": f"{self.amount:.2f}",
                    },
                    "description": self.description,
                }
            ],
        }


def _metadata_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_metadata(
    settings: Settings, caller_metadata: Mapping[str, Any] | None, origin: str | None
) -> dict[str, str]:
    """
    Merge caller metadata over the fixed donation fields.

    Fixed fields are written first and caller keys are spread over them, so a
    caller can replace `app`, `type` or `origin`. Each replacement is logged.
    """
    merged: dict[str, str] = {
        "app": settings.APP_SLUG,
        "type": "donation",
        "origin": origin or "unknown",
    }
    for key, value in (caller_metadata or {}).items():
        if value is None:
            continue
        key = str(key)
        if key in FIXED_METADATA_KEYS:
            logger.warning(
                "metadata_fixed_key_overridden",
                key=key,
                fixed=merged[key],
                supplied=_metadata_value(value),
            )
        merged[key] = _metadata_value(value)
    return merged


def build_stripe_intent_request(
    amount: ValidatedAmount,
    currency: Any,
    metadata: Mapping[str, Any] | None,
    origin: str | None,
    settings: Settings,
) -> StripeIntentRequest:
    if amount.provider is not Provider.STRIPE:
        raise ValueError("amount was validated for a different provider")
    return StripeIntentRequest(
        amount=int(amount.value),
        currency=normalize_currency(currency, Provider.STRIPE),
        metadata=build_metadata(settings, metadata, origin),
    )


def build_paypal_order_request(
    amount: ValidatedAmount, currency: Any, settings: Settings
) -> PayPalOrderRequest:
    if amount.provider is not Provider.PAYPAL:
        raise ValueError("amount was validated for a different provider")
    base = settings.frontend_base_url
    return PayPalOrderRequest(
        amount=Decimal(amount.value),
        currency=normalize_currency(currency, Provider.PAYPAL),
        return_url=f"{base}/paypal/success",
        cancel_url=f"{base}/paypal/cancel",
        brand_name=settings.BRAND_NAME,
        description=settings.DONATION_DESCRIPTION,
    )


__all__ = [
    "PayPalOrderRequest",
    "StripeIntentRequest",
    "build_metadata",
    "build_paypal_order_request",
    "build_stripe_intent_request",
]
