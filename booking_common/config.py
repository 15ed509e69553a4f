"""Centralized application configuration using Pydantic settings."""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven configuration shared across services."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    database_url: str = Field(
        default="sqlite:///./booking.db",
        description="SQLAlchemy database URL. Defaults to local SQLite for development.",
    )
    run_db_migrations: bool = Field(
        default=False,
        description="Whether this service should create/update database tables on startup.",
    )
    jwt_secret: str = Field(default="super-secret", description="JWT signing secret")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(default=60, description="Token lifetime in minutes")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")
    default_rate_limit: str = Field(default="30/minute", description="Global rate limiting rule")
    rate_limiting_enabled: bool = Field(default=True, description="Toggle to disable SlowAPI limits (useful in tests)")
    resource_cache_ttl: int = Field(default=60, description="TTL (s) for cached room/transport listings")

    auto_reject_conflicts: bool = Field(
        default=True,
        description="Reject overlapping PENDING bookings when one of them is approved.",
    )

    smtp_host: Optional[str] = Field(default=None, description="SMTP relay host; e-mail is skipped when unset")
    smtp_port: int = Field(default=587, description="SMTP relay port")
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    mail_from: str = Field(default="Booking System <no-reply@booking.local>", description="From header for e-mails")

    push_enabled: bool = Field(default=False, description="Deliver push notifications to stored device tokens")
    push_endpoint: str = Field(
        default="https://exp.host/--/api/v2/push/send",
        description="Push gateway accepting {to, title, body, data} messages",
    )
    notification_timeout_seconds: float = Field(
        default=5.0, description="Upper bound (s) for every outbound e-mail/push call"
    )

    reminder_lead_minutes: int = Field(default=60, description="Remind requesters this long before a booking starts")
    reminder_interval_seconds: int = Field(default=60, description="Polling interval of the reminder job")
    booking_timezone: Optional[str] = Field(
        default=None,
        description="IANA zone that booking dates and times are entered in; the server local time when unset",
    )

    log_dir: str = Field(default="logs", description="Directory receiving per-service audit logs")

    users_service_port: int = 8001
    resources_service_port: int = 8002
    bookings_service_port: int = 8003
    notifications_service_port: int = 8004
    reports_service_port: int = 8005


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the Settings object."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the cached Settings instance (useful for tests)."""

    get_settings.cache_clear()
