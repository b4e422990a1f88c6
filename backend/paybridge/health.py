"""Health check module reporting provider configuration."""

from __future__ import annotations

import time
from typing import Any

from .settings import Settings


def _is_configured(value: str | None) -> bool:
    """Return True when a config string is non-empty after trimming."""
    if value is None:
        return False
    return bool(value.strip())


class HealthChecker:
    """
    Report which provider integrations are usable.

    Checks are configuration-only; no provider is contacted, so the health
    endpoint stays cheap enough for platform probes.
    """

    def check_all(self, settings: Settings) -> dict[str, Any]:
        checks = {
            "stripe": self._check_stripe(settings),
            "stripe_webhook": (
                {"status": "ok"}
                if _is_configured(settings.STRIPE_WEBHOOK_SECRET)
                else {"status": "missing", "detail": "STRIPE_WEBHOOK_SECRET not set"}
            ),
            "paypal": (
                {"status": "ok", "base_url": settings.paypal_base_url}
                if settings.paypal_configured
                else {"status": "disabled"}
            ),
            "paypal_webhook_verification": (
                {"status": "ok"} if _is_configured(settings.PAYPAL_WEBHOOK_ID) else {"status": "disabled"}
            ),
            "sentry": {"status": "ok"} if _is_configured(settings.SENTRY_DSN) else {"status": "disabled"},
        }
        healthy = all(check["status"] in {"ok", "disabled"} for check in checks.values())
        return {
            "status": "healthy" if healthy else "degraded",
            "timestamp": time.time(),
            "checks": checks,
        }

    def _check_stripe(self, settings: Settings) -> dict[str, Any]:
        key = settings.STRIPE_SECRET_KEY
        if not _is_configured(key):
            return {"status": "missing", "detail": "STRIPE_SECRET_KEY not set"}
        if not key.startswith(("sk_", "rk_")):
            return {"status": "invalid", "detail": "STRIPE_SECRET_KEY does not look like a secret key"}
        return {"status": "ok", "mode": settings.stripe_mode}


health_checker = HealthChecker()
