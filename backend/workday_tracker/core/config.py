# FILE: backend/workday_tracker/core/config.py
# ARCHIVE ENGINE - CONFIGURATION
# 1. Retention, search paging and fan-out limits are environment driven.
# 2. ARCHIVE_EXPORT_ROOT accepts a trailing slash or not.

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    # --- Database ---
    DATABASE_URI: str = "mongodb://localhost:27017/workday_tracker"
    DATABASE_TIMEOUT_MS: int = 5000

    # --- Archive Lifecycle ---
    DEFAULT_RETENTION_DAYS: int = 365
    ARCHIVE_EXPORT_ROOT: str = "gs://archive-bucket/archive/data"

    # --- Archive Search ---
    ARCHIVE_SEARCH_DEFAULT_LIMIT: int = 10
    ARCHIVE_SEARCH_MAX_LIMIT: int = 100

    # --- Image Archival ---
    IMAGE_ARCHIVE_CONCURRENCY: int = 8
    TICKET_UPDATE_MAX_RETRIES: int = 3

    @field_validator("ARCHIVE_EXPORT_ROOT", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        if isinstance(v, str):
            return v.rstrip("/")
        return v

    @field_validator("IMAGE_ARCHIVE_CONCURRENCY", "TICKET_UPDATE_MAX_RETRIES")
    @classmethod
    def at_least_one(cls, v: int) -> int:
        return max(1, v)

settings = Settings()
