"""
Service configuration from environment variables.
Settings class using pydantic-settings; every field has a local-dev default.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"

PAGE_SIZE_MIN = 100
PAGE_SIZE_MAX = 2000
PAGE_SIZE_DEFAULT = 500


class Settings(BaseSettings):
    # Source (EDM) and destination (ESS) PostgreSQL connection strings
    edm_database_url: str = Field(default="", validation_alias="EDM_DATABASE_URL")
    ess_database_url: str = Field(default="", validation_alias="ESS_DATABASE_URL")

    # Internal SQLite store for sync jobs, logs, audit and backup records
    internal_db_path: Path = Field(
        default=_PROJECT_ROOT / "internal.db",
        validation_alias="INTERNAL_DB_PATH",
    )

    sync_page_size: int = Field(
        default=PAGE_SIZE_DEFAULT,
        ge=PAGE_SIZE_MIN,
        le=PAGE_SIZE_MAX,
        validation_alias="SYNC_PAGE_SIZE",
    )
    auto_backup_before_sync: bool = Field(default=True, validation_alias="AUTO_BACKUP_BEFORE_SYNC")
    backup_dir: Path = Field(default=_PROJECT_ROOT / "backups", validation_alias="BACKUP_DIR")

    scheduled_sync_enabled: bool = Field(default=True, validation_alias="SCHEDULED_SYNC_ENABLED")
    scheduled_sync_cron: str = Field(default="0 1 * * *", validation_alias="SCHEDULED_SYNC_CRON")
    scheduled_sync_timezone: str = Field(
        default="Asia/Ulaanbaatar",
        validation_alias="SCHEDULED_SYNC_TIMEZONE",
    )

    notification_webhook_url: str = Field(default="", validation_alias="NOTIFICATION_WEBHOOK_URL")
    notification_timeout_seconds: float = Field(default=10.0, validation_alias="NOTIFICATION_TIMEOUT_SECONDS")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # Stored as a string so an empty env value never trips JSON decoding
    cors_origins: str = Field(default="http://localhost:8080", validation_alias="CORS_ORIGINS")

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE if _ENV_FILE.exists() else ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> str:
        if v is None or (isinstance(v, str) and not v.strip()):
            return "INFO"
        return str(v).strip().upper()

    @property
    def cors_origins_list(self) -> list[str]:
        return [x.strip() for x in (self.cors_origins or "").split(",") if x.strip()]

    def validate_for_production(self) -> None:
        """Raise ValueError naming every missing connection string."""
        missing: list[str] = []
        if not self.edm_database_url:
            missing.append("EDM_DATABASE_URL")
        if not self.ess_database_url:
            missing.append("ESS_DATABASE_URL")
        if missing:
            raise ValueError(f"Missing required environment variables: {', '.join(missing)}")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
