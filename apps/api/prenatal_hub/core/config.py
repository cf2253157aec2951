from __future__ import annotations

from pathlib import Path
from urllib.parse import urlparse

from pydantic import AnyUrl, Field
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(ENV_FILE), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_env: str = Field(default="development", alias="APP_ENV")
    frontend_url: AnyUrl = Field(alias="FRONTEND_URL")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Supabase
    supabase_url: AnyUrl = Field(alias="SUPABASE_URL")
    supabase_anon_key: str = Field(alias="SUPABASE_ANON_KEY")
    supabase_service_role_key: str = Field(alias="SUPABASE_SERVICE_ROLE_KEY")

    # Observability
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")
    sentry_traces_sample_rate: float = Field(
        default=0.0, alias="SENTRY_TRACES_SAMPLE_RATE"
    )

    # Limits
    auth_ip_per_minute_limit: int = Field(default=240, alias="AUTH_IP_PER_MINUTE_LIMIT")
    auth_user_per_minute_limit: int = Field(
        default=240, alias="AUTH_USER_PER_MINUTE_LIMIT"
    )
    migrate_per_minute_limit: int = Field(default=3, alias="MIGRATE_PER_MINUTE_LIMIT")
    journal_content_max_chars: int = Field(
        default=10000, alias="JOURNAL_CONTENT_MAX_CHARS"
    )

    # Account lifecycle
    account_deletion_grace_days: int = Field(
        default=30, alias="ACCOUNT_DELETION_GRACE_DAYS"
    )
    account_purge_batch_size: int = Field(
        default=200, alias="ACCOUNT_PURGE_BATCH_SIZE"
    )
    account_cron_token: str | None = Field(default=None, alias="ACCOUNT_CRON_TOKEN")

    @model_validator(mode="after")
    def validate_runtime_constraints(self) -> "Settings":
        env = (self.app_env or "").strip().lower()
        is_prod = env in {"production", "prod"}

        frontend_origin = urlparse(str(self.frontend_url))
        frontend_host = (frontend_origin.hostname or "").lower()
        if is_prod and frontend_host in {"localhost", "127.0.0.1"}:
            raise ValueError(
                "Invalid FRONTEND_URL for production: localhost is not allowed. "
                "Set FRONTEND_URL to your public web domain."
            )

        supabase_origin = urlparse(str(self.supabase_url))
        supabase_host = (supabase_origin.hostname or "").lower()
        if is_prod and supabase_host in {"localhost", "127.0.0.1"}:
            raise ValueError(
                "Invalid SUPABASE_URL for production: localhost is not allowed."
            )

        if not (1 <= self.account_deletion_grace_days <= 365):
            raise ValueError("ACCOUNT_DELETION_GRACE_DAYS must be between 1 and 365")
        if not (1 <= self.account_purge_batch_size <= 2000):
            raise ValueError("ACCOUNT_PURGE_BATCH_SIZE must be 1..2000")
        if not (1 <= self.journal_content_max_chars <= 100000):
            raise ValueError("JOURNAL_CONTENT_MAX_CHARS must be 1..100000")
        for name in (
            "auth_ip_per_minute_limit",
            "auth_user_per_minute_limit",
            "migrate_per_minute_limit",
        ):
            if getattr(self, name) < 1:
                raise ValueError(f"{name.upper()} must be >= 1")

        return self

    def is_production(self) -> bool:
        return (self.app_env or "").strip().lower() in {"production", "prod"}


settings = Settings()  # type: ignore[call-arg]  # singleton import via env settings
