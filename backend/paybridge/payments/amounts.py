"""Provider-specific amount and currency validation."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation
from typing import Any

from ..errors import ValidationError, ValidationReason
from ..settings import Settings
from .base import Provider, ValidatedAmount

STRIPE_MINIMUM_MESSAGE = "Amount must be at least $0.50 (50 cents)"
STRIPE_MAXIMUM_MESSAGE = "Amount cannot exceed $9,999.99"
PAYPAL_MINIMUM_MESSAGE = "Amount must be at least $1.00"
PAYPAL_FORMAT_MESSAGE = "Amount is too large for a PayPal order"
CURRENCY_MESSAGE = "Currency must be a 3-letter ISO-4217 code"

DEFAULT_CURRENCY = {Provider.STRIPE: "usd", Provider.PAYPAL: "USD"}

_CENT = Decimal("0.01")
# PayPal caps `amount.value` at 32 characters: 31 digits plus the decimal point
_PAYPAL_CONTEXT = Context(prec=31)


def _to_decimal(raw: Any) -> Decimal | None:
    # bool is an int subclass; `true` is not an amount
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int | float | Decimal):
        candidate = str(raw)
    elif isinstance(raw, str) and raw.strip():
        candidate = raw.strip()
    else:
        return None
    try:
        value = Decimal(candidate)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


def validate_amount(raw: Any, provider: Provider, settings: Settings) -> ValidatedAmount:
    """
    Check a donation amount against the bounds of the target provider.

    Stripe amounts are integer minor units within [STRIPE_MIN_AMOUNT, STRIPE_MAX_AMOUNT].
    PayPal amounts are decimal major units of at least PAYPAL_MIN_AMOUNT. There is
    no upper bound beyond what fits in PayPal's 32-character amount value.

    Raises:
        ValidationError: with reason missing, below_minimum or above_maximum
    """
    value = _to_decimal(raw)
    if provider is Provider.STRIPE:
        if value is None:
            raise ValidationError(ValidationReason.MISSING, STRIPE_MINIMUM_MESSAGE)
        if value < settings.STRIPE_MIN_AMOUNT:
            raise ValidationError(ValidationReason.BELOW_MINIMUM, STRIPE_MINIMUM_MESSAGE)
        if value > settings.STRIPE_MAX_AMOUNT:
            raise ValidationError(ValidationReason.ABOVE_MAXIMUM, STRIPE_MAXIMUM_MESSAGE)
        minor = int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return ValidatedAmount(provider=provider, value=minor)

    if value is None:
        raise ValidationError(ValidationReason.MISSING, PAYPAL_MINIMUM_MESSAGE)
    if value < settings.PAYPAL_MIN_AMOUNT:
        raise ValidationError(ValidationReason.BELOW_MINIMUM, PAYPAL_MINIMUM_MESSAGE)
    try:
        cents = value.quantize(_CENT, rounding=ROUND_HALF_UP, context=_PAYPAL_CONTEXT)
    except InvalidOperation:
        raise ValidationError(ValidationReason.ABOVE_MAXIMUM, PAYPAL_FORMAT_MESSAGE) from None
    return ValidatedAmount(provider=provider, value=cents)


def normalize_currency(raw: Any, provider: Provider) -> str:
    """Lowercase for Stripe, uppercase for PayPal; defaults to US dollars."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return DEFAULT_CURRENCY[provider]
    code = str(raw).strip()
    if len(code) != 3 or not code.isascii() or not code.isalpha():
        raise ValidationError(ValidationReason.INVALID_CURRENCY, CURRENCY_MESSAGE)
    return code.lower() if provider is Provider.STRIPE else code.upper()


__all__ = ["normalize_currency", "validate_amount"]
