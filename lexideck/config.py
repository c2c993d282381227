"""
Configuration settings for lexideck.

Uses Pydantic Settings for environment variable management with .env file support.
All variables are prefixed with LEXIDECK_ (e.g. LEXIDECK_DATABASE_URL).
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_HOME = Path.home() / ".lexideck"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="LEXIDECK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Storage
    # ========================================
    database_url: str = Field(
        default=f"sqlite:///{DEFAULT_HOME / 'deck.db'}",
        description="SQLAlchemy URL of the card store",
    )
    export_dir: Path = Field(
        default=DEFAULT_HOME / "exports",
        description="Default directory for deck snapshot files",
    )

    # ========================================
    # Learning
    # ========================================
    source_language: str = Field(
        default="ru",
        description="Language tag assigned to new cards when none is given",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Logging verbosity level",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
