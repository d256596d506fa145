# config.py

"""Application configuration utilities.

Values are primarily loaded from ``config.json`` and may be overridden by
environment variables. The :func:`get_settings` helper merges the two sources
and caches the result.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings merged from JSON and environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite+aiosqlite:///./tablepoints.db"
    redis_url: str = "redis://localhost:6379/0"
    business_timezone: str = "Asia/Shanghai"
    default_language: str = "zh"
    default_restaurant_points: int = 1000
    order_retention_days: int = 30
    point_log_retention_days: int = 90
    dish_log_retention_days: int = 30
    settings_cache_ttl: int = 3600
    txn_max_attempts: int = 5
    txn_retry_backoff_ms: int = 20
    point_card_batch_limit: int = 500
    super_admin_key: str | None = None


# Cached singleton to avoid repeated file reads
@lru_cache
def get_settings() -> Settings:
    """Return merged settings with environment variable precedence.

    The configuration is read from ``config.json`` located alongside this file
    when present and fed into :class:`Settings`. Environment variables override
    any values from the JSON file. The result is cached to prevent repeated
    disk reads.
    """

    config_path = Path(__file__).with_name("config.json")
    data = json.loads(config_path.read_text()) if config_path.exists() else {}
    env_override = {
        k.lower(): v
        for k, v in os.environ.items()
        if k.lower() in Settings.model_fields
    }
    merged = {**data, **env_override}
    # Environment variables override values from the JSON file.
    return Settings(**merged)
