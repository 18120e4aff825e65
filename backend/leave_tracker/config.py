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

    app_name: str = "Leave Tracker"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "postgresql+asyncpg://leave_tracker:leave_tracker@db:5432/leave_tracker"
    persistence_backend: Literal["memory", "sql"] = "memory"
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Leave allowances applied to newly created users (days).
    default_annual_leave_allowance: int = 32
    default_sick_leave_allowance: int = 10

    # Protected coverage set: users who must not be absent at the same time.
    protected_user_emails: list[str] = []
    require_coverage_check: bool = True

    balance_cache_ttl_seconds: int = 300
    calendar_cache_ttl_seconds: int = 60
    cache_max_size: int = 500

    rejection_reason_min_length: int = 3
    max_request_days_ahead: int = 365
    toil_hours_per_day: int = 8


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
