"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from decimal import Decimal

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.config.constants import (
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    FRAUD_FLAG_THRESHOLD,
    PAYOUT_MINIMUM_BALANCE,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Redis (for Dramatiq)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    # Webhook secrets (unset = unverified mode)
    storefront_webhook_secret: str | None = None
    subscription_webhook_secret: str | None = None
    identity_webhook_secret: str | None = None
    disbursement_webhook_id: str | None = None

    # Payment processor (PayPal Payouts)
    paypal_client_id: str | None = None
    paypal_client_secret: str | None = None
    paypal_mode: str = Field(default="sandbox", description="sandbox or live")

    # Marketing / notification platform (Klaviyo)
    klaviyo_api_key: str | None = None

    # Storefront admin API (Shopify)
    shopify_store_domain: str | None = None
    shopify_admin_access_token: str | None = None
    shopify_api_version: str = "2024-01"

    # Admin
    admin_user_ids: str = ""  # Comma-separated identity subjects

    # Cron endpoint bearer secret
    cron_secret: str | None = None

    # Business rules
    payout_minimum_balance: Decimal = Field(
        default=PAYOUT_MINIMUM_BALANCE, ge=0,
        description="Minimum balance owed before an affiliate can be paid out",
    )
    fraud_flag_threshold: int = Field(
        default=FRAUD_FLAG_THRESHOLD, gt=0,
        description="Fraud score at or above which a check is flagged",
    )

    # Outbound HTTP
    http_timeout_seconds: float = Field(
        default=DEFAULT_HTTP_TIMEOUT_SECONDS, ge=10, le=60,
        description="Total timeout for third-party API calls",
    )

    # Application
    environment: str = "production"
    log_level: str = "INFO"
    web_host: str = "0.0.0.0"
    web_port: int = Field(default=8000, ge=1, le=65535)
    health_check_port: int = Field(
        default=8081, ge=1, le=65535, description="Health check HTTP server port"
    )
    reconciliation_interval_minutes: int = Field(
        default=10, ge=1, le=60,
        description="How often the payout reconciliation poller runs",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("paypal_mode")
    @classmethod
    def validate_paypal_mode(cls, v: str) -> str:
        """PayPal mode must be sandbox or live."""
        v = v.strip().lower()
        if v not in ("sandbox", "live"):
            raise ValueError("PAYPAL_MODE must be 'sandbox' or 'live'")
        return v

    @model_validator(mode="after")
    def warn_unverified_webhooks(self) -> "Settings":
        """Warn about webhook sources running without signature verification."""
        if self.environment == "production":
            for name in (
                "storefront_webhook_secret",
                "subscription_webhook_secret",
                "identity_webhook_secret",
            ):
                if not getattr(self, name):
                    logger.warning(
                        f"{name.upper()} is not set: webhooks from this source "
                        "will be accepted without signature verification"
                    )
        return self

    def get_admin_ids(self) -> list[str]:
        """
        Get list of admin identity subjects.

        Returns:
            List of subject ids from the comma-separated allowlist
        """
        if not self.admin_user_ids:
            return []
        return [
            item.strip()
            for item in self.admin_user_ids.split(",")
            if item.strip()
        ]

    @property
    def paypal_configured(self) -> bool:
        """Whether PayPal credentials are present."""
        return bool(self.paypal_client_id and self.paypal_client_secret)

    @property
    def shopify_configured(self) -> bool:
        """Whether the storefront admin API is configured."""
        return bool(self.shopify_store_domain and self.shopify_admin_access_token)


# Global settings instance
settings = Settings()
