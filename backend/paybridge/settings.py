from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

REPO_ROOT = Path(__file__).resolve().parents[2]
ENV_FILE = REPO_ROOT / ".env"

PAYPAL_LIVE_BASE_URL = "https://api-m.paypal.com"
PAYPAL_SANDBOX_BASE_URL = "https://api-m.sandbox.paypal.com"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE), env_file_encoding="utf-8", extra="ignore", frozen=True
    )

    ENVIRONMENT: Literal["development", "production", "test"] = "development"
    # human-readable console logs instead of JSON
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # Branding stamped onto provider requests
    APP_SLUG: str = "shavahn-bible"
    BRAND_NAME: str = "Shavahn Bible App"
    DONATION_DESCRIPTION: str = "Donation to Shavahn Bible App Ministry"
    FRONTEND_URL: str = "http://localhost:3000"

    # Stripe
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str | None = None
    STRIPE_MIN_AMOUNT: int = 50  # minor units, $0.50
    STRIPE_MAX_AMOUNT: int = 999_999  # minor units, $9,999.99

    # PayPal
    PAYPAL_CLIENT_ID: str | None = None
    PAYPAL_CLIENT_SECRET: str | None = None
    PAYPAL_BASE_URL: str | None = None
    # Webhook verification is only performed when this is set
    PAYPAL_WEBHOOK_ID: str | None = None
    PAYPAL_MIN_AMOUNT: Decimal = Decimal("1.00")  # major units

    # Deadline applied to every outbound provider call
    PROVIDER_TIMEOUT_SECONDS: float = 15.0

    # CORS: comma-separated origins plus a regex for tunnel hosts (Expo, ngrok)
    CORS_ALLOW_ORIGINS: str = (
        "http://localhost:8081,http://localhost:19006,"
        "http://192.168.1.100:8081,exp://192.168.1.100:8081"
    )
    CORS_ALLOW_ORIGIN_REGEX: str | None = r"https://.*\.(exp\.direct|ngrok\.io)"

    # Observability
    SENTRY_DSN: str | None = None
    SENTRY_ENVIRONMENT: str = "development"
    SENTRY_RELEASE: str | None = None
    SENTRY_TRACES_SAMPLE_RATE: float = 0.2

    @property
    def allow_origins(self) -> list[str]:
        s = (self.CORS_ALLOW_ORIGINS or "").strip()
        if s == "*":
            return ["*"]
        if s == "":
            return []
        return [part.strip() for part in s.split(",") if part.strip()]

    @property
    def stripe_mode(self) -> str:
        return "LIVE" if self.STRIPE_SECRET_KEY.startswith("sk_live_") else "TEST"

    @property
    def paypal_base_url(self) -> str:
        if self.PAYPAL_BASE_URL:
            return self.PAYPAL_BASE_URL.rstrip("/")
        if self.ENVIRONMENT == "production":
            return PAYPAL_LIVE_BASE_URL
        return PAYPAL_SANDBOX_BASE_URL

    @property
    def paypal_configured(self) -> bool:
        return bool(
            (self.PAYPAL_CLIENT_ID or "").strip() and (self.PAYPAL_CLIENT_SECRET or "").strip()
        )

    @property
    def frontend_base_url(self) -> str:
        return (self.FRONTEND_URL or "http://localhost:3000").rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
