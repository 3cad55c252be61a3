"""Configuration settings using Pydantic Settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    environment: Literal["development", "test", "production"] = "development"
    api_docs_enabled: bool | None = None

    # Storage
    database_url: str
    storage_retry_attempts: int = 3
    storage_retry_base_delay_ms: int = 50
    slow_query_ms: float = 0.0

    # Credentials
    bcrypt_rounds: int = 12
    access_token_expire_minutes: int = 60 * 24
    refresh_token_expire_days: int = 7
    reset_password_token_expire_hours: int = 2
    verify_email_token_expire_hours: int = 48

    # More than `lockout_threshold` failures inside the rolling window locks
    # the account for `lockout_duration_minutes`.
    lockout_threshold: int = 5
    lockout_window_minutes: int = 15
    lockout_duration_minutes: int = 15

    # Observability
    log_level: LogLevel = "INFO"
    metrics_token: SecretStr | None = None

    # CORS
    cors_allow_origins: list[str] = ["http://localhost:3000"]
    cors_allow_methods: list[str] = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
    cors_allow_headers: list[str] = [
        "Accept",
        "Authorization",
        "Content-Type",
        "X-Request-ID",
        "X-Organization-ID",
    ]
    cors_allow_credentials: bool = True

    # Worker
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str | None = None

    @property
    def docs_enabled(self) -> bool:
        if self.api_docs_enabled is None:
            return self.environment != "production"
        return self.api_docs_enabled

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, v):
        return v.upper() if isinstance(v, str) else v

    @field_validator(
        "cors_allow_origins",
        "cors_allow_methods",
        "cors_allow_headers",
        mode="before",
    )
    @classmethod
    def _parse_csv_lists(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @model_validator(mode="after")
    def _check_lockout_policy(self) -> Settings:
        if self.lockout_threshold < 1:
            raise ValueError("LOCKOUT_THRESHOLD must be at least 1")
        if self.lockout_window_minutes < 1 or self.lockout_duration_minutes < 1:
            raise ValueError("Lockout window and duration must be at least one minute")
        return self

    @model_validator(mode="after")
    def _validate_production_settings(self) -> Settings:
        if self.environment != "production":
            return self

        if self.bcrypt_rounds < 10:
            raise ValueError("BCRYPT_ROUNDS must be at least 10 in production")

        for name in ("cors_allow_origins", "cors_allow_methods", "cors_allow_headers"):
            if "*" in getattr(self, name):
                raise ValueError(f"{name.upper()} cannot contain '*' in production")

        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
