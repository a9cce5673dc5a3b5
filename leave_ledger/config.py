from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Leave Ledger"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"
    database_url: str = "postgresql+asyncpg://leave_ledger:leave_ledger@db:5432/leave_ledger"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]

    # Employee directory (auth service). When unset, an empty in-memory directory is used.
    directory_url: str | None = None
    directory_max_age_seconds: int = 900
    directory_timeout_seconds: float = 10.0

    notifications_enabled: bool = True
    notification_webhook_url: str | None = None

    job_concurrency: int = 8
    job_timeout_seconds: float | None = None
    accrue_inactive_categories: bool = False
    reminder_days_in_advance: int = 3


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
