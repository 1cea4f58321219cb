"""Storage client configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (deployments might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_storage_settings() -> "StorageSettings":
    """Build storage settings from environment."""

    return StorageSettings()


def _build_log_settings() -> "LogSettings":
    """Build log settings from environment."""

    return LogSettings()


class StorageSettings(BaseSettings):
    """Remote blob storage configuration.

    The access token is a static per-deployment credential; provisioning it
    is outside this package. Validation of provider-specific requirements
    happens in the factory.
    """

    provider: str = Field(
        "dropbox",
        description="Storage provider name (currently only 'dropbox')",
    )
    access_token: str | None = Field(
        None,
        description="Bearer token sent with every request (required for dropbox)",
    )
    api_base_url: str = Field(
        "https://api.dropboxapi.com/2",
        description="Base URL for RPC endpoints (metadata, delete)",
    )
    content_base_url: str = Field(
        "https://content.dropboxapi.com/2",
        description="Base URL for content endpoints (upload, download)",
    )
    remote_folder: str = Field(
        "MultiplayerGames",
        description="Remote folder every blob name is placed under",
    )
    timeout_seconds: float = Field(
        30.0,
        description="Request timeout in seconds",
        gt=0,
    )
    default_retry_after_seconds: int = Field(
        300,
        description="Cooldown used when a rate limit response carries no usable retry_after",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field(
        "INFO",
        description="Root log level (DEBUG, INFO, WARNING, ERROR)",
    )
    format: str = Field(
        "json",
        description="Log format: 'json' or 'plain'",
    )
    output: str = Field(
        "stdout",
        description="Log destination: 'stdout' or 'file'",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output is 'file'",
    )
    max_bytes: int = Field(
        0,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(
        5,
        description="Number of rotated log files to keep",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.

    Environments:
    - development: Local development
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    storage: StorageSettings = Field(default_factory=_build_storage_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
