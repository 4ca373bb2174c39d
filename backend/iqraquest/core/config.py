# backend/iqraquest/core/config.py
from decimal import Decimal
import logging
import os
from pathlib import Path
from typing import Any, Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import BRAND_NAME


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    """Runtime configuration for the payouts backend."""

    model_config = SettingsConfigDict(
        env_file=None,
        case_sensitive=False,
        extra="ignore",
        validate_assignment=True,
    )

    app_name: str = Field(default=BRAND_NAME)
    environment: Literal["local", "development", "staging", "production", "test"] = "local"

    # Database / broker
    database_url: str = Field(
        default="sqlite+pysqlite:///./iqraquest.db",
        description="SQLAlchemy URL for the primary database",
    )
    database_echo: bool = Field(default=False)
    redis_url: Optional[str] = Field(
        default="redis://localhost:6379",
        description="Redis URL used as Celery broker and result backend",
    )

    # Paystack (HMAC-SHA512 over raw body)
    paystack_secret_key: SecretStr = Field(
        default=SecretStr(""),
        description="Paystack secret key used to sign webhook bodies",
    )

    # Stripe (timestamped HMAC-SHA256)
    stripe_webhook_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe webhook endpoint signing secret (whsec_...)",
    )
    stripe_signature_tolerance_seconds: int = Field(
        default=300,
        ge=1,
        description="Maximum allowed clock skew for Stripe signature timestamps",
    )

    # PayPal (remote verification API)
    paypal_client_id: str = Field(default="", description="PayPal REST client id")
    paypal_client_secret: SecretStr = Field(
        default=SecretStr(""), description="PayPal REST client secret"
    )
    paypal_webhook_id: str = Field(
        default="", description="Webhook id registered in the PayPal dashboard"
    )
    paypal_mode: Literal["sandbox", "live"] = Field(default="sandbox")
    paypal_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Per-request timeout for PayPal OAuth and verification calls",
    )

    # Payouts
    payout_currency: str = Field(default="NGN", description="Currency for payout requests")
    auto_payout_default_threshold: Decimal = Field(
        default=Decimal("50000"),
        description="Threshold used when no auto_payout_threshold setting is stored",
    )
    auto_payout_notification_channels: list[str] = Field(
        default_factory=lambda: ["in-app", "email"],
    )

    @field_validator("payout_currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.strip().upper()

    @property
    def paypal_base_url(self) -> str:
        if self.paypal_mode == "live":
            return "https://api-m.paypal.com"
        return "https://api-m.sandbox.paypal.com"

    def get_database_url(self) -> str:
        """Return the database URL, preferring an explicit test URL under pytest."""
        if is_running_tests():
            test_url = os.getenv("TEST_DATABASE_URL")
            if test_url:
                return test_url
        return self.database_url


settings = Settings()


def secret_value(secret: Any) -> str:
    """Return the plain value of a SecretStr-or-str setting (empty string when unset)."""
    if secret is None:
        return ""
    if hasattr(secret, "get_secret_value"):
        return str(secret.get_secret_value())
    return str(secret)


__all__ = ["Settings", "settings", "secret_value", "is_running_tests"]
