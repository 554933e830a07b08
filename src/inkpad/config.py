"""Configuration management for Inkpad."""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration via environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Image resolution
    max_image_width: int = Field(
        default=800,
        alias="INKPAD_MAX_IMAGE_WIDTH",
    )
    image_workers: int = Field(
        default=4,
        alias="INKPAD_IMAGE_WORKERS",
    )

    # Document I/O
    encoding: str = Field(
        default="utf-8",
        alias="INKPAD_ENCODING",
    )

    log_level: str = Field(
        default="WARNING",
        alias="INKPAD_LOG_LEVEL",
    )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance, creating it if needed."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """Load settings from an optional specific .env file."""
    global _settings
    if env_file:
        _settings = Settings(_env_file=env_file)
    else:
        _settings = Settings()
    return _settings
