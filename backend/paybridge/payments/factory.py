from __future__ import annotations

import threading
from collections.abc import Callable
from typing import TypeVar

from fastapi import Depends

from ..settings import Settings, get_settings
from .base import Provider
from .paypal_gateway import PayPalGateway
from .stripe_gateway import StripeGateway

G = TypeVar("G")

# one gateway per (provider, settings); the PayPal one owns an httpx.Client
_gateways: dict[tuple[Provider, Settings], object] = {}
_lock = threading.Lock()


def _cached(provider: Provider, settings: Settings, build: Callable[[Settings], G]) -> G:
    key = (provider, settings)
    with _lock:
        gateway = _gateways.get(key)
        if gateway is None:
            gateway = _gateways[key] = build(settings)
        return gateway  # type: ignore[return-value]


def get_stripe_gateway(settings: Settings = Depends(get_settings)) -> StripeGateway:
    return _cached(Provider.STRIPE, settings, StripeGateway)


def get_paypal_gateway(settings: Settings = Depends(get_settings)) -> PayPalGateway:
    return _cached(Provider.PAYPAL, settings, PayPalGateway)


def reset_gateways() -> None:
    """Drop every cached gateway, closing the HTTP clients they hold."""
    with _lock:
        gateways = list(_gateways.values())
        _gateways.clear()
    for gateway in gateways:
        if isinstance(gateway, PayPalGateway):
            gateway.close()
