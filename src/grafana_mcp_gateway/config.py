"""
Configuration management for Grafana MCP Gateway.

Settings come from environment variables and an optional .env file.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    """Log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ServerMode(str, Enum):
    """Which transport shells the process attaches."""

    MCP = "mcp"
    HTTP = "http"
    BOTH = "both"

    @property
    def uses_stdio(self) -> bool:
        return self in (ServerMode.MCP, ServerMode.BOTH)

    @property
    def uses_http(self) -> bool:
        return self in (ServerMode.HTTP, ServerMode.BOTH)


class Settings(BaseSettings):
    """
    Application settings with validation.

    Settings can be configured via:
    - Environment variables (GRAFANA_URL, GRAFANA_API_KEY, SERVER_MODE, ...)
    - .env file
    - Direct instantiation

    Example:
        ```bash
        export GRAFANA_URL="http://grafana:3000"
        export GRAFANA_API_KEY="glsa_xxx"
        export SERVER_MODE="both"
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Grafana Connection
    # ==========================================================================

    grafana_url: str = Field(
        description="Grafana base URL",
        examples=["http://localhost:3000", "https://grafana.example.com"],
    )

    grafana_api_key: SecretStr = Field(
        description="Grafana service account token or API key (sent as Bearer)",
    )

    timeout: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Per-request deadline in seconds",
    )

    # ==========================================================================
    # Server
    # ==========================================================================

    server_mode: ServerMode = Field(
        default=ServerMode.MCP,
        description="mcp (stdio tool-call protocol), http (JSON API) or both",
    )

    host: str = Field(
        default="0.0.0.0",
        description="Host to bind the HTTP server",
    )

    port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Port for the HTTP server",
    )

    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins for the HTTP server",
    )

    # ==========================================================================
    # Logging
    # ==========================================================================

    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level",
    )

    log_format: str = Field(
        default="json",
        description="Log format (json or text)",
    )

    # ==========================================================================
    # Queries
    # ==========================================================================

    default_step: str = Field(
        default="1m",
        description="Step used when a range query omits one",
    )

    # ==========================================================================
    # Validators
    # ==========================================================================

    @field_validator("grafana_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate and normalize the Grafana URL."""
        v = v.rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v

    @field_validator("grafana_api_key")
    @classmethod
    def validate_api_key(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value().strip():
            raise ValueError("API key must not be empty")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return v

    # ==========================================================================
    # Helpers
    # ==========================================================================

    def get_auth_headers(self) -> dict[str, str]:
        """Get authentication headers."""
        return {"Authorization": f"Bearer {self.grafana_api_key.get_secret_value()}"}


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings

    Raises:
        pydantic.ValidationError: When GRAFANA_URL or GRAFANA_API_KEY is missing
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
