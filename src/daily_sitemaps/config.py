"""Application settings loaded from environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ChangeFrequency = Literal[
    "always", "hourly", "daily", "weekly", "monthly", "yearly", "never"
]


class Settings(BaseSettings):
    """Runtime configuration sourced from environment variables and .env."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    DATABASE_URL: str
    HOST: str = "0.0.0.0"
    PORT: int = Field(default=8000, ge=1, le=65535)
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: Literal["json", "text"] = "text"
    LOG_FILE: Path | None = None
    LOG_FILE_MAX_BYTES: int = Field(default=10_485_760, ge=1)
    LOG_FILE_BACKUP_COUNT: int = Field(default=5, ge=1)
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_JOBSTORE_URL: str = "sqlite:///./scheduler-jobs.sqlite"
    GENERATION_TICK_INTERVAL_SECONDS: int = Field(default=60, ge=1)
    AUTOMATIC_UPDATE_ENABLED: bool = True
    AUTOMATIC_UPDATE_INTERVAL_SECONDS: int = Field(default=900, ge=1)
    SHUTDOWN_GRACE_PERIOD_SECONDS: int = Field(default=30, ge=1)
    SITEMAP_BASE_URL: str = "http://localhost:8000"
    SITEMAP_MAX_ENTRIES: int = Field(default=50_000, ge=1, le=50_000)
    SITEMAP_PAGE_SIZE: int = Field(default=500, ge=1)
    SITEMAP_INCLUDE_IMAGES: bool = True
    SITEMAP_MAX_IMAGES_PER_ENTRY: int = Field(default=1000, ge=0)
    SITEMAP_DEFAULT_CHANGEFREQ: ChangeFrequency = "monthly"
    SITEMAP_DEFAULT_PRIORITY: float = Field(default=0.7, ge=0.0, le=1.0)
    SITEMAP_STALENESS_TOLERANCE_SECONDS: int = Field(default=0, ge=0)
    SITEMAP_START_YEAR: int = Field(default=1970, ge=1)
    SITEMAP_STYLESHEET_URL: str | None = None
    SITEMAP_EXPORT_DIR: Path = Path("./sitemap-exports")
    SITEMAP_STATS_RECENT_DAYS: int = Field(default=7, ge=1, le=366)

    @field_validator("LOG_FILE", "SITEMAP_STYLESHEET_URL", mode="before")
    @classmethod
    def parse_optional_value(cls, value: object) -> object:
        if value in (None, ""):
            return None
        return value

    @field_validator("SITEMAP_BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]
