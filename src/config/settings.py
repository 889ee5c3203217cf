"""
Configuration management for the participation report service.

All configuration comes from environment variables or .env file.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator, model_validator
from typing import Optional
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="REPORTS_",
        case_sensitive=False
    )

    # Storage
    database_url: str = "sqlite:///data/reports.db"

    # Mail transport (SendGrid)
    sendgrid_api_key: str = ""
    sendgrid_sender: str = "no-reply@example.org"
    sendgrid_sender_name: str = "Training reports"
    sendgrid_sandbox_mode: bool = False

    # Scheduler
    disable_export_scheduler: bool = False
    scheduler_interval_seconds: float = 60.0
    scheduler_max_jitter_seconds: float = Field(default=10.0, ge=0)

    # API
    api_key: str = ""
    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Error tracking
    sentry_dsn: str = ""
    sentry_environment: str = "development"
    sentry_traces_sample_rate: float = 0.1

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # Validators
    @field_validator('scheduler_interval_seconds')
    @classmethod
    def validate_interval(cls, v: float) -> float:
        """Scheduler interval must be strictly positive."""
        if v <= 0:
            raise ValueError("scheduler_interval_seconds must be > 0")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(valid_levels)}")
        return v.upper()

    @model_validator(mode='after')
    def validate_mail_credentials(self):
        """Ensure a SendGrid key is set unless emails are sandboxed."""
        if not self.sendgrid_sandbox_mode and not self.sendgrid_api_key:
            raise ValueError("REPORTS_SENDGRID_API_KEY required when sandbox mode is off")
        return self


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
