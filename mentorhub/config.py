from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./mentorhub.db"
    FALLBACK_DATABASE_URL: str = "sqlite:///./mentorhub.db"

    # JWT Authentication
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Application
    APP_ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Scheduling
    # Mentors author availability as wall-clock times in this zone; everything
    # stored or compared internally is a UTC instant.
    PLATFORM_TIMEZONE: str = "Asia/Kolkata"
    SLOT_GRANULARITY_MINUTES: int = 60
    DEFAULT_SESSION_DURATION_MINUTES: int = 60
    STUDENT_CANCEL_NOTICE_HOURS: int = 24
    AUTO_COMPLETE_BUFFER_MINUTES: int = 10
    EARLY_START_WINDOW_MINUTES: int = 10
    REQUIRE_CONNECTION_FOR_BOOKING: bool = False
    AUTO_COMPLETE_SWEEP_INTERVAL_SECONDS: int = 0

    # Email Configuration
    EMAIL_NOTIFICATIONS_ENABLED: bool = True
    SMTP_SERVER: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    EMAIL_FROM: Optional[str] = None
    EMAIL_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False
    SMTP_TIMEOUT_SECONDS: int = 8

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
