"""
Application configuration using environment variables.
"""
import secrets
from functools import lru_cache
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Newsdesk API"
    debug: bool = False
    environment: str = "development"

    # Security
    secret_key: str = ""
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60  # 1 hour
    refresh_token_expire_days: int = 7

    # Database
    database_url: str = "sqlite:///./newsdesk.db"

    # CORS
    cors_origins: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # Rate limiting
    login_rate_limit: str = "5/minute"
    register_rate_limit: str = "3/minute"
    refresh_rate_limit: str = "10/minute"

    # Background jobs
    scheduler_enabled: bool = True
    publish_poll_seconds: int = 60
    publish_lookback_minutes: int = 30
    rss_heartbeat_minutes: int = 5
    rss_batch_size: int = 5
    cleanup_cron_hour: int = 2

    # RSS ingestion
    rss_fetch_timeout: int = 10  # seconds
    rss_user_agent: str = "Newsdesk-RSS-Parser/1.0"
    rss_default_category: str = "General"
    rss_default_brand: str = "RSS Feed"
    rss_default_interval_minutes: int = 60
    rss_dedupe_by_title: bool = True

    # Notifications
    notification_throttling_enabled: bool = True
    max_notifications_per_hour: int = 5
    max_notifications_per_day: int = 20
    notification_retention_days: int = 30
    delete_read_after_days: int = 30
    delete_unread_after_days: int = 60

    # Web push (VAPID)
    vapid_public_key: str = ""
    vapid_private_key: str = ""
    vapid_subject: str = "mailto:admin@newsdesk.local"
    push_ttl_seconds: int = 86400

    # Activity retention by severity
    activity_retention_info_days: int = 90
    activity_retention_warning_days: int = 180
    activity_retention_critical_days: int = 365

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Validate secret key on startup
settings = get_settings()
if not settings.secret_key:
    if settings.environment == "production":
        raise ValueError(
            "SECRET_KEY must be set in production! "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
        )
    settings.secret_key = secrets.token_urlsafe(32)
