"""Homescreen CMS configuration system using Pydantic Settings."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CmsConfig(BaseSettings):
    """Main configuration class. Loads from .env file and environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = "Homescreen CMS"
    debug: bool = False
    host: str = "127.0.0.1"
    port: int = 4000
    cors_origins: str = "http://localhost:3000"

    # Database
    database_url: str = "sqlite+aiosqlite:///./homescreen_cms.db"
    db_wal_mode: bool = True
    db_busy_timeout: int = 5000  # ms
    db_synchronous: str = "NORMAL"

    # Uploads
    api_base_url: str = "http://localhost:4000"
    upload_dir: str = "uploads"
    upload_url_prefix: str = "/uploads/"
    upload_max_bytes: int = 10 * 1024 * 1024  # 10 MB

    # Rendering
    render_cache_max_age: int = 60  # seconds, public Cache-Control on rendered screens
    default_screen_slug: str = "dashboard"

    # Layout-saved webhook
    layout_webhook_url: Optional[str] = None
    layout_webhook_timeout: float = 10.0

    # Logging
    log_dir: str = "logs"
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("upload_url_prefix")
    @classmethod
    def validate_upload_url_prefix(cls, v: str) -> str:
        if not v.startswith("/") or not v.endswith("/"):
            raise ValueError("upload_url_prefix must start and end with '/'")
        return v

    @field_validator("db_synchronous")
    @classmethod
    def validate_db_synchronous(cls, v: str) -> str:
        allowed = {"OFF", "NORMAL", "FULL", "EXTRA"}
        if v.upper() not in allowed:
            raise ValueError(f"db_synchronous must be one of {allowed}")
        return v.upper()

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def upload_path(self) -> Path:
        return Path(self.upload_dir).resolve()


def get_config() -> CmsConfig:
    """Factory function to create config instance."""
    return CmsConfig()
