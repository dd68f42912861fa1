"""
Configuration and settings for the dashboard backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=10000)
    log_level: str = Field(default="INFO")

    # Database (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Session cookie
    session_secret: Optional[str] = Field(default=None)
    session_max_age_seconds: int = Field(default=7 * 24 * 60 * 60)
    session_https_only: bool = Field(default=False)

    # Single dashboard user
    admin_username: str = Field(default="")
    admin_password: str = Field(default="")

    # Google Drive backups
    drive_root_folder_name: str = Field(default="Project-Ops Backups")
    drive_access_token: Optional[str] = Field(default=None)
    replit_connectors_hostname: Optional[str] = Field(default=None)
    repl_identity: Optional[str] = Field(default=None)
    web_repl_renewal: Optional[str] = Field(default=None)
    remote_timeout_seconds: float = Field(default=30.0, gt=0)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
