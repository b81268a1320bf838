"""Configuration settings for appgen.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

import logging
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_artifacts_dir() -> Path:
    """Return the default artifacts directory."""
    return Path.home() / ".local" / "share" / "appgen" / "artifacts"


def _default_db_url() -> str:
    """Return the default database URL (SQLite)."""
    db_path = Path.home() / ".local" / "share" / "appgen" / "db.sqlite"
    return f"sqlite:///{db_path}"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the APPGEN_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="APPGEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    artifacts_dir: Path = Field(
        default_factory=_default_artifacts_dir,
        description="Root directory for generated app archives",
    )
    db_url: str = Field(
        default_factory=_default_db_url,
        description="Database connection URL",
    )

    # Operational modes
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Background dispatch
    background_mode: Literal["local", "http"] = Field(
        default="local",
        description="How background jobs are dispatched (in-process threads or HTTP)",
    )
    background_base_url: str = Field(
        default="http://127.0.0.1:8000",
        description="Base URL the HTTP dispatcher posts jobs to",
    )
    background_timeout: int = Field(
        default=3600,
        ge=1,
        description="Timeout for HTTP job dispatch requests (seconds)",
    )
    max_background_workers: int = Field(
        default=2,
        ge=1,
        le=10,
        description="Maximum concurrent background jobs",
    )


def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for the CLI and web entry points.

    Args:
        level: Log level name. Uses settings.log_level if not provided.
    """
    if level is None:
        level = get_settings().log_level
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


__all__ = ["Settings", "configure_logging", "get_settings", "print_settings_json"]
