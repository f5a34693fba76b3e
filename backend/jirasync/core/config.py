"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    APP_NAME: str = "Jira Sync"
    ENV: str = "development"

    DATABASE_URL: str = "postgresql+psycopg://postgres@localhost:5432/jira_sync"
    # Engine bookkeeping tables; defaults to the application database.
    ENGINE_DATABASE_URL: str = ""
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000"

    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"
    SYNC_TASK_QUEUE: str = "jira-sync"
    SYNC_DEFAULT_CRON: str = "*/15 * * * *"
    SYNC_ACTIVITY_TIMEOUT_SECONDS: int = 600
    SYNC_ACTIVITY_MAX_ATTEMPTS: int = 5
    SYNC_ACTIVITY_RETRY_INITIAL_SECONDS: int = 1
    SYNC_ACTIVITY_RETRY_MAX_SECONDS: int = 100
    SYNC_SCHEDULE_TICK_SECONDS: int = 30
    SYNC_EXECUTION_LEASE_SECONDS: int = 3600

    JIRA_SYNC_PAGE_SIZE: int = 100
    JIRA_HTTP_TIMEOUT_SECONDS: float = 25.0
    JIRA_HTTP_MAX_RETRIES: int = 3

    OPS_ALERT_EMAILS: str = ""
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM: str = ""
    SMTP_TLS: bool = True

    model_config = SettingsConfigDict(env_file=str(BASE_DIR / ".env"), env_file_encoding="utf-8")

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def engine_database_url(self) -> str:
        return self.ENGINE_DATABASE_URL.strip() or self.DATABASE_URL

    @property
    def ops_alert_recipients(self) -> list[str]:
        return [entry.strip() for entry in self.OPS_ALERT_EMAILS.split(",") if entry.strip()]


settings = Settings()
