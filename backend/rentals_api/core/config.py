"""Application configuration via pydantic settings."""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from typing import Any

from pydantic import Field
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed application configuration."""

    app_env: str = Field("local", alias="APP_ENV")
    app_name: str = "Rental Booking API"
    api_v1_prefix: str = "/api/v1"
    site_url: str = Field("http://localhost:3000", alias="SITE_URL")

    database_url: str = Field(..., alias="DATABASE_URL")
    sync_database_url: str | None = Field(default=None, alias="SYNC_DATABASE_URL")

    internal_api_token: str | None = Field(default=None, alias="INTERNAL_API_TOKEN")

    redis_url: str | None = Field(default=None, alias="REDIS_URL")

    smtp_host: str | None = Field(default=None, alias="SMTP_HOST")
    smtp_port: int | None = Field(default=None, alias="SMTP_PORT")
    smtp_username: str | None = Field(default=None, alias="SMTP_USER")
    smtp_password: str | None = Field(default=None, alias="SMTP_PASSWORD")
    smtp_from: str | None = Field(default=None, alias="SMTP_FROM")

    stripe_publishable_key: str | None = Field(
        default=None, alias="STRIPE_PUBLISHABLE_KEY"
    )
    stripe_secret_key: str | None = Field(default=None, alias="STRIPE_SECRET_KEY")
    stripe_webhook_secret: str | None = Field(
        default=None, alias="STRIPE_WEBHOOK_SECRET"
    )
    payments_webhook_verify: bool = Field(default=True, alias="PAYMENTS_WEBHOOK_VERIFY")

    booking_timezone: str = Field("America/New_York", alias="BOOKING_TIMEZONE")
    lead_time_hours: int = Field(18, alias="LEAD_TIME_HOURS")
    booking_cutoff_hour: int = Field(12, alias="BOOKING_CUTOFF_HOUR")
    deposit_amount: Decimal = Field(Decimal("50.00"), alias="DEPOSIT_AMOUNT")
    checkout_session_ttl_minutes: int = Field(30, alias="CHECKOUT_SESSION_TTL_MINUTES")
    pending_booking_ttl_minutes: int = Field(45, alias="PENDING_BOOKING_TTL_MINUTES")

    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        alias="CORS_ALLOW_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=False, alias="CORS_ALLOW_CREDENTIALS")
    cors_allowlist: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"], alias="CORS_ALLOWLIST"
    )

    rate_limit_booking: str = Field("10/minute", alias="RATE_LIMIT_BOOKING")

    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parents[3] / ".env",
        case_sensitive=False,
    )

    @field_validator("cors_allow_origins", "cors_allowlist", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()  # type: ignore[call-arg]
