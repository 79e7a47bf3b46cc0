# backend/app/core/config.py
import logging
import os
from pathlib import Path
from typing import Optional

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
    logger.info(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    # Bearer tokens issued by the auth provider (verified only, never minted here)
    secret_key: SecretStr = Field(
        default=SecretStr("dev-secret-key-change-me"),
        description="Secret key for JWT tokens",
    )
    algorithm: str = "HS256"

    # Database
    database_url: str = Field(
        default="sqlite:///./combat_booking.db",
        alias="DATABASE_URL",
        description="SQLAlchemy database URL",
    )
    database_echo: bool = False
    is_testing: bool = False  # Set to True when running tests
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # Email settings
    email_enabled: bool = Field(default=True, description="Flag to enable/disable email sending")
    resend_api_key: str | None = Field(
        default=None,
        alias="RESEND_API_KEY",
        description="API key for Resend provider",
    )
    from_email: str = Field(
        default=f"{BRAND_NAME} <bookings@combatbooking.com>",
        alias="RESEND_FROM_EMAIL",
    )
    admin_email: str = Field(default="admin@combatbooking.com", alias="ADMIN_EMAIL")

    # Frontend URL used for magic links and payment pages
    frontend_url: str = "http://localhost:3000"

    # Guest access tokens
    access_token_default_days: int = Field(
        default=90, description="Default lifetime of guest booking access tokens"
    )
    access_token_min_length: int = Field(
        default=32, description="Shortest token string accepted for resolution"
    )

    # Stripe Configuration
    stripe_secret_key: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe secret key for backend API calls",
    )
    stripe_webhook_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Signing secret for the payments webhook endpoint",
    )
    stripe_platform_fee_percentage: float = Field(
        default=15, description="Platform fee percentage (15 = 15%)"
    )
    stripe_currency: str = Field(default="usd", description="Default currency for payments")
    stripe_timeout_seconds: int = Field(default=8, description="Stripe HTTP client timeout")
    stripe_max_network_retries: int = Field(
        default=1, description="Retries for transient Stripe network failures"
    )

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,  # allows SECRET_KEY to match secret_key
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("stripe_platform_fee_percentage")
    @classmethod
    def _validate_fee(cls, value: float) -> float:
        if value < 0 or value > 100:
            raise ValueError("stripe_platform_fee_percentage must be between 0 and 100")
        return value

    @field_validator("frontend_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def stripe_configured(self) -> bool:
        return bool(self.stripe_secret_key.get_secret_value())

    @property
    def webhook_secret(self) -> Optional[str]:
        secret = self.stripe_webhook_secret.get_secret_value()
        return secret or None


settings = Settings()
