"""
Configuration management using pydantic-settings.

Loads configuration from environment variables and .env files.
Validates fields and provides typed access to settings.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Optional:
        PROFILE_API_BASE_URL: Base URL of the remote profile provider
        PROFILE_API_KEY: API key sent to the provider as x-api-key
        HTTP_TIMEOUT_SECONDS: Timeout applied to every remote call
        CACHE_DIR: Base directory for the database and avatar files
        AVATAR_DIR: Directory for avatar files (default CACHE_DIR/avatars)
        DB_PATH: SQLite database file (default CACHE_DIR/users.db)
        AVATAR_EXTENSION: File extension for cached avatars
        LOG_LEVEL: Logging level
        LOG_FILE: JSON-lines log file
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Remote profile provider
    PROFILE_API_BASE_URL: str = Field(
        default="https://reqres.in",
        description="Base URL of the remote profile provider",
    )
    PROFILE_API_KEY: str | None = Field(
        default=None, description="Profile provider API key"
    )
    HTTP_TIMEOUT_SECONDS: float = Field(
        default=5.0, gt=0.0, le=120.0, description="Timeout for remote calls"
    )

    # Storage
    CACHE_DIR: Path = Field(default=Path(".cache"), description="Cache directory")
    AVATAR_DIR: Path | None = Field(default=None, description="Avatar file directory")
    DB_PATH: Path | None = Field(default=None, description="User record database")
    AVATAR_EXTENSION: str = Field(
        default="jpg", description="File extension for cached avatars"
    )

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    LOG_FILE: Path | None = Field(default=None, description="JSON-lines log file")

    @field_validator("PROFILE_API_BASE_URL")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an http(s) URL and strip any trailing slash."""
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("PROFILE_API_BASE_URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("AVATAR_EXTENSION")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        """Normalize the extension and reject anything but letters and digits."""
        v = v.strip().lstrip(".").lower()
        if not v or not v.isalnum():
            raise ValueError("AVATAR_EXTENSION must be alphanumeric, e.g. 'jpg'")
        return v

    @property
    def avatar_dir(self) -> Path:
        """Directory holding cached avatar files."""
        return self.AVATAR_DIR if self.AVATAR_DIR is not None else self.CACHE_DIR / "avatars"

    @property
    def db_path(self) -> Path:
        """SQLite file holding user records."""
        return self.DB_PATH if self.DB_PATH is not None else self.CACHE_DIR / "users.db"

    def ensure_directories(self) -> None:
        """Create cache and database directories if they don't exist."""
        self.CACHE_DIR.mkdir(parents=True, exist_ok=True)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def redacted_display(self) -> dict[str, str | float | None]:
        """Return settings with API keys redacted for display."""
        def redact(value: str | None) -> str | None:
            if value is None:
                return None
            return f"{value[:8]}...{value[-4:]}" if len(value) > 12 else "***"

        return {
            "PROFILE_API_BASE_URL": self.PROFILE_API_BASE_URL,
            "PROFILE_API_KEY": redact(self.PROFILE_API_KEY),
            "HTTP_TIMEOUT_SECONDS": self.HTTP_TIMEOUT_SECONDS,
            "CACHE_DIR": str(self.CACHE_DIR),
            "AVATAR_DIR": str(self.avatar_dir),
            "DB_PATH": str(self.db_path),
            "AVATAR_EXTENSION": self.AVATAR_EXTENSION,
            "LOG_LEVEL": self.LOG_LEVEL,
            "LOG_FILE": str(self.LOG_FILE) if self.LOG_FILE else None,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
