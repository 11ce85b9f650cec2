"""
Configuration management using pydantic-settings.

Loads configuration from BLOCKASSETS_* environment variables and .env files.
Validates fields and provides typed access to settings.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path, PurePosixPath
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from blockassets import __version__

# Default location of the assets shipped inside the installed package
PACKAGE_BUNDLED_DIR = Path(__file__).parent / "bundled"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All variables are read with the ``BLOCKASSETS_`` prefix, e.g.
    ``BLOCKASSETS_REMOTE_ROOT``.

    Optional:
        REMOTE_ROOT: Base URL that remote asset paths are appended to
        CACHE_DIR: Directory holding the persistent store and settings db
        BUNDLED_DIR: Directory holding the read-only bundled assets
        QUOTA_BYTES: Maximum bytes the persistent store may hold
        FETCH_TIMEOUT: Remote fetch timeout in seconds
        UPDATE_CONCURRENCY: Maximum concurrent fetches in an update cycle
        UPDATE_INTERVAL_SECONDS: Interval for the external update scheduler
        HASH_ALGORITHM: Digest used to verify downloaded assets (md5, sha256)
        USER_NAMESPACE: Path prefix of user-authored assets
        PACKAGE_VERSION: Override of the running package version
        LOG_LEVEL: Logging level
        LOG_FILE: Optional JSON-lines log file
    """

    model_config = SettingsConfigDict(
        env_prefix="BLOCKASSETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    REMOTE_ROOT: str = Field(
        default="https://raw2.github.com/gorhill/ublock/master/",
        description="Base URL for remote assets",
    )

    # Directories
    CACHE_DIR: Path = Field(default=Path(".cache/blockassets"), description="Cache directory")
    BUNDLED_DIR: Path = Field(
        default=PACKAGE_BUNDLED_DIR, description="Bundled read-only assets directory"
    )

    # Limits
    QUOTA_BYTES: int = Field(
        default=40 * 1024 * 1024, gt=0, description="Persistent store quota in bytes"
    )
    FETCH_TIMEOUT: float = Field(
        default=30.0, gt=0.0, le=600.0, description="Remote fetch timeout in seconds"
    )
    UPDATE_CONCURRENCY: int = Field(
        default=4, ge=1, le=32, description="Maximum concurrent fetches per update cycle"
    )
    UPDATE_INTERVAL_SECONDS: int = Field(
        default=4 * 24 * 60 * 60,
        ge=60,
        description="How often the external scheduler should run an update cycle",
    )

    HASH_ALGORITHM: Literal["md5", "sha256"] = Field(
        default="md5", description="Digest used to verify downloaded assets"
    )

    USER_NAMESPACE: str = Field(
        default="assets/user", description="Path prefix exempt from version purges"
    )
    PACKAGE_VERSION: str | None = Field(
        default=None, description="Override of the running package version"
    )

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    LOG_FILE: Path | None = Field(default=None, description="JSON-lines log file")

    @field_validator("REMOTE_ROOT")
    @classmethod
    def validate_remote_root(cls, v: str) -> str:
        """Require an http(s) URL; asset paths are appended to it verbatim."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("REMOTE_ROOT must be an http:// or https:// URL")
        if not v.endswith("/"):
            v = v + "/"
        return v

    @field_validator("USER_NAMESPACE")
    @classmethod
    def validate_user_namespace(cls, v: str) -> str:
        """Require a non-empty relative path prefix."""
        v = v.strip().strip("/")
        if not v:
            raise ValueError("USER_NAMESPACE must not be empty")
        if PurePosixPath(v).is_absolute() or ".." in PurePosixPath(v).parts:
            raise ValueError("USER_NAMESPACE must be a relative path")
        return v

    @property
    def package_version(self) -> str:
        """Version that owns the cache contents."""
        return self.PACKAGE_VERSION or __version__

    @property
    def store_dir(self) -> Path:
        """Directory of the flat persistent asset store."""
        return self.CACHE_DIR / "store"

    @property
    def settings_db_path(self) -> Path:
        """SQLite file backing the key-value settings store."""
        return self.CACHE_DIR / "settings.db"

    def ensure_directories(self) -> None:
        """Create the cache directory if it doesn't exist."""
        self.CACHE_DIR.mkdir(parents=True, exist_ok=True)

    def display(self) -> dict[str, str | int | float | None]:
        """Return settings as plain values for display."""
        return {
            "REMOTE_ROOT": self.REMOTE_ROOT,
            "CACHE_DIR": str(self.CACHE_DIR),
            "BUNDLED_DIR": str(self.BUNDLED_DIR),
            "QUOTA_BYTES": self.QUOTA_BYTES,
            "FETCH_TIMEOUT": self.FETCH_TIMEOUT,
            "UPDATE_CONCURRENCY": self.UPDATE_CONCURRENCY,
            "UPDATE_INTERVAL_SECONDS": self.UPDATE_INTERVAL_SECONDS,
            "HASH_ALGORITHM": self.HASH_ALGORITHM,
            "USER_NAMESPACE": self.USER_NAMESPACE,
            "PACKAGE_VERSION": self.package_version,
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
