"""Runtime configuration using pydantic-settings.

All environment-based configuration flows through this module.

Usage:
    from parka.core.config import get_settings
    settings = get_settings()

    settings.port
    settings.dev_mode
"""

from __future__ import annotations

import logging
import tempfile
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

BACKENDS = ("starlette", "aiohttp")


def get_package_version() -> str:
    """Get the package version from installed metadata.

    Returns the version from pyproject.toml when installed,
    or a dev fallback when running from source without install.
    """
    try:
        return version("parka")
    except PackageNotFoundError:
        return "0.0.0-dev"


class ParkaSettings(BaseSettings):
    """Configuration for the Parka HTTP server.

    Settings can be configured via environment variables with PARKA_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="PARKA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # SERVER SETTINGS
    # ==========================================================================

    host: str = Field(default="127.0.0.1", description="Host to bind to")
    port: int = Field(default=8080, description="Port to bind to")
    backend: str = Field(
        default="starlette",
        description="HTTP stack serving the routes: 'starlette' or 'aiohttp'",
    )
    server_name: str = Field(default="parka", description="Server name")
    server_version: str = Field(default_factory=get_package_version, description="Server version")

    # Route configuration file (YAML, see parka.handlers.config)
    config_file: Path | None = Field(default=None, description="Path to the routes config file")

    # Reload templates on every request
    dev_mode: bool = Field(default=False, description="Development mode (template reloading)")

    templates_dir: Path | None = Field(
        default=None,
        description="Directory with templates overriding the bundled ones",
    )
    static_dir: Path | None = Field(default=None, description="Directory served under /static")

    # ==========================================================================
    # OUTPUT SETTINGS
    # ==========================================================================

    stream_rows: bool = Field(
        default=True,
        description="Stream rows into HTML tables as they are produced",
    )
    temp_dir: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()),
        description="Directory for temporary download files",
    )

    # CORS settings
    allowed_origins: list[str] = Field(
        default=[],
        description="Allowed CORS origins. Empty = same-origin only. Set to ['*'] for development.",
    )

    # ==========================================================================
    # LOGGING SETTINGS
    # ==========================================================================

    log_level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    log_format: str = Field(
        default="",
        description="Log format: 'json', 'text', or '' (auto-detect)",
    )
    log_file: str | None = Field(default=None, description="Log file path (optional)")

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, value: str) -> str:
        value = value.lower()
        if value not in BACKENDS:
            raise ValueError(f"backend must be one of {', '.join(BACKENDS)}, got '{value}'")
        return value

    @property
    def base_url(self) -> str:
        """Get the base URL for the server."""
        return f"http://{self.host}:{self.port}"


# Global settings instance - lazy loaded
_settings: ParkaSettings | None = None


def get_settings() -> ParkaSettings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = ParkaSettings()
    return _settings


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    global _settings
    _settings = None
