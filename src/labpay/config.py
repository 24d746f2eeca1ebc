"""Runtime configuration loaded from environment variables.

Settings are read once per process via get_settings() (lru_cache). Secrets
that are absent from the environment can be fetched lazily from SSM
Parameter Store, see labpay.services.ssm_service.resolve_secret.

Usage:
    from labpay.config import get_settings

    settings = get_settings()
    settings.platform_fee_pct  # 0.18
"""

import os
from functools import lru_cache
from typing import Literal
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from labpay.models.errors import ConfigurationError

DEFAULT_STRIPE_API_VERSION = "2024-06-20"

# Stripe rejects expires_at under 30 minutes after it stamps the session.
# The margin absorbs local clock skew and request latency.
CHECKOUT_EXPIRY_MARGIN_SECONDS = 60


def _env_bool(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def _env_list(value: str | None) -> list[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


class Settings(BaseModel):
    """Validated application settings."""

    model_config = ConfigDict(frozen=True)

    environment: str = "dev"

    # Stripe
    stripe_secret_key: str | None = None
    stripe_webhook_secret: str | None = None
    stripe_api_version: str = DEFAULT_STRIPE_API_VERSION
    stripe_timeout_seconds: float = 30.0
    stripe_max_network_retries: int = 2
    webhook_tolerance_seconds: int = Field(default=300, gt=0)

    # Content store (Webflow CMS)
    webflow_token: str | None = None
    webflow_collection_id: str | None = None
    coach_collection_id: str | None = None
    webflow_cms_locale_id: str | None = None
    webflow_api_base: str = "https://api.webflow.com/v2"
    content_store_timeout_seconds: float = 10.0
    max_retry_attempts: int = Field(default=3, ge=1)
    retry_base_delay_seconds: float = Field(default=1.0, ge=0)
    cache_ttl_seconds: float = Field(default=300.0, ge=0)
    slug_scan_max_items: int = Field(default=2000, gt=0)
    page_size: int = Field(default=100, gt=0, le=100)

    # Checkout
    public_site_url: str | None = None
    platform_fee_pct: float = Field(default=0.18, ge=0, le=1)
    platform_fee_cents: int | None = Field(default=None, ge=0)
    checkout_success_path: str = "/flight-lab-success"
    checkout_cancel_path: str = "/flight-lab-cancelled"
    currency: str = "usd"
    checkout_expiry_seconds: int = Field(default=1800, ge=1800, le=86340)

    # Automation forwarding (Make.com)
    make_webhook_url: str | None = None
    make_forwarding_secret: str | None = None
    automation_timeout_seconds: float = 10.0
    event_ledger_safety_factor: int = Field(default=12, ge=1)
    # Time for automation to decrement seatsRemaining after a forward
    settlement_lag_seconds: float = Field(default=300.0, ge=0)

    # State backends for seat holds and the processed-event ledger
    state_backend: Literal["memory", "dynamodb"] = "memory"
    use_ssm: bool = False
    ssm_prefix: str | None = None

    # Misc
    allowed_origins: list[str] = Field(default_factory=list)
    debug_errors: bool = False

    @field_validator("stripe_secret_key")
    @classmethod
    def _stripe_key_format(cls, value: str | None) -> str | None:
        if value is not None and not value.startswith("sk_"):
            raise ValueError("STRIPE_SECRET_KEY must start with sk_")
        return value

    @field_validator("currency")
    @classmethod
    def _lower_currency(cls, value: str) -> str:
        return value.strip().lower()

    @property
    def is_production(self) -> bool:
        return self.environment in ("prod", "production")

    @property
    def is_live_mode(self) -> bool:
        return bool(self.stripe_secret_key and self.stripe_secret_key.startswith("sk_live_"))

    @property
    def event_ledger_retention_seconds(self) -> int:
        """How long processed event ids are remembered."""
        return self.webhook_tolerance_seconds * self.event_ledger_safety_factor

    @property
    def session_lifetime_seconds(self) -> int:
        """Seconds from now to the Checkout Session expires_at."""
        return self.checkout_expiry_seconds + CHECKOUT_EXPIRY_MARGIN_SECONDS

    @property
    def seat_hold_seconds(self) -> float:
        """An unpaid hold outlives the session by the CMS cache TTL."""
        return self.session_lifetime_seconds + self.cache_ttl_seconds

    @property
    def committed_hold_seconds(self) -> float:
        """A paid hold counts until the decremented counter is visible."""
        return self.settlement_lag_seconds + self.cache_ttl_seconds

    @property
    def ssm_parameter_prefix(self) -> str:
        return self.ssm_prefix or f"/labpay/{self.environment}"

    def public_base_url(self) -> str:
        """Return the validated public site URL.

        Raises:
            ConfigurationError: If unset, not absolute, or not HTTPS in production.
        """
        base = (self.public_site_url or "").strip()
        if not base:
            raise ConfigurationError("PUBLIC_SITE_URL is not configured")
        try:
            parts = urlsplit(base)
        except ValueError as e:
            raise ConfigurationError(f"PUBLIC_SITE_URL is malformed: {e}") from e
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ConfigurationError("PUBLIC_SITE_URL must be an absolute http(s) URL")
        if self.is_production and parts.scheme != "https":
            raise ConfigurationError("PUBLIC_SITE_URL must use HTTPS in production")
        return base

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Settings":
        """Build settings from environment variables.

        Args:
            environ: Mapping to read instead of os.environ (tests).

        Raises:
            ConfigurationError: If a variable has an invalid format.
        """
        env = os.environ if environ is None else environ

        raw: dict[str, object] = {
            "environment": env.get("ENVIRONMENT", "dev"),
            "stripe_secret_key": env.get("STRIPE_SECRET_KEY") or None,
            "stripe_webhook_secret": env.get("STRIPE_WEBHOOK_SECRET") or None,
            "stripe_api_version": env.get("STRIPE_API_VERSION") or DEFAULT_STRIPE_API_VERSION,
            "webflow_token": env.get("WEBFLOW_TOKEN") or None,
            "webflow_collection_id": env.get("WEBFLOW_COLLECTION_ID") or None,
            "coach_collection_id": env.get("COACH_COLLECTION_ID") or None,
            "webflow_cms_locale_id": env.get("WEBFLOW_CMS_LOCALE_ID") or None,
            "public_site_url": env.get("PUBLIC_SITE_URL") or None,
            "checkout_success_path": env.get("CHECKOUT_SUCCESS_URL") or "/flight-lab-success",
            "checkout_cancel_path": env.get("CHECKOUT_CANCEL_URL") or "/flight-lab-cancelled",
            "currency": env.get("CHECKOUT_CURRENCY") or "usd",
            "make_webhook_url": env.get("MAKE_WEBHOOK_URL") or None,
            "make_forwarding_secret": env.get("MAKE_FORWARDING_SECRET") or None,
            "state_backend": env.get("LABPAY_STATE_BACKEND") or "memory",
            "use_ssm": _env_bool(env.get("LABPAY_USE_SSM")),
            "ssm_prefix": env.get("LABPAY_SSM_PREFIX") or None,
            "allowed_origins": _env_list(env.get("ALLOWED_ORIGINS")),
            "debug_errors": _env_bool(env.get("DEBUG_ERRORS") or env.get("DEBUG_STRIPE_ERRORS")),
        }

        try:
            if env.get("PLATFORM_FEE_PCT"):
                raw["platform_fee_pct"] = float(env["PLATFORM_FEE_PCT"])
            if env.get("PLATFORM_FEE_CENTS"):
                raw["platform_fee_cents"] = int(env["PLATFORM_FEE_CENTS"])
        except ValueError as e:
            raise ConfigurationError(f"Invalid platform fee configuration: {e}") from e

        try:
            return cls(**raw)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the process-wide Settings instance.

    Call get_settings.cache_clear() after changing the environment in tests.
    """
    return Settings.from_env()
