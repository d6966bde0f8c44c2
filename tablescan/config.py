"""
Configuration settings for the table-scan reader.

Uses Pydantic Settings to load environment variables for logging and scan
defaults. Values passed explicitly to `ReaderFunction` or `BoundedScan` take
precedence over these settings.
"""
from __future__ import annotations

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Reader defaults
    batch_size: int = Field(1024, gt=0, alias="TABLESCAN_BATCH_SIZE")
    case_sensitive: bool = Field(True, alias="TABLESCAN_CASE_SENSITIVE")

    # Scan driver defaults
    scan_parallelism: int = Field(2, gt=0, alias="TABLESCAN_PARALLELISM")
    split_max_attempts: int = Field(3, gt=0, alias="TABLESCAN_SPLIT_MAX_ATTEMPTS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
