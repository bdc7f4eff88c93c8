"""Configuration settings for stackbuild.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the STACKBUILD_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="STACKBUILD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    cache_dir: Path | None = Field(
        default=None,
        description="Root of the persistent build cache store (disabled if unset)",
    )
    manifest_file: str = Field(
        default="docker-compose.yml",
        description="Manifest file name, relative to the application directory",
    )

    # Container tool
    docker_bin: str = Field(
        default="docker",
        description="Container build tool executable",
    )
    image_cache_path: str = Field(
        default="/var/cache/build",
        description="Build cache path inside built images",
    )

    # Operational modes
    verbose: bool = Field(
        default=False,
        description="Echo every container tool command before running it",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Logging level",
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


__all__ = ["Settings", "get_settings", "print_settings_json"]
