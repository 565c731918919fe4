"""Tests for configuration module."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from grafana_mcp_gateway.config import (
    LogLevel,
    ServerMode,
    Settings,
    clear_settings_cache,
    get_settings,
)


class TestSettings:
    """Test Settings class."""

    def test_default_settings(self):
        """Test default settings values."""
        settings = Settings(grafana_url="http://grafana:3000", grafana_api_key="key")

        assert settings.timeout == 30.0
        assert settings.server_mode == ServerMode.MCP
        assert settings.host == "0.0.0.0"
        assert settings.port == 8080
        assert settings.default_step == "1m"
        assert settings.log_level == LogLevel.INFO
        assert settings.log_format == "json"
        assert settings.cors_origins == ["*"]

    def test_required_settings(self):
        """Test GRAFANA_URL and GRAFANA_API_KEY are required."""
        with pytest.raises(ValidationError) as exc_info:
            Settings()

        missing = {err["loc"][0] for err in exc_info.value.errors()}
        assert missing == {"grafana_url", "grafana_api_key"}

    def test_url_validation(self):
        """Test URL validation."""
        Settings(grafana_url="http://localhost:3000", grafana_api_key="key")
        Settings(grafana_url="https://grafana.example.com", grafana_api_key="key")

        with pytest.raises(ValidationError):
            Settings(grafana_url="localhost:3000", grafana_api_key="key")

        with pytest.raises(ValidationError):
            Settings(grafana_url="ftp://grafana:3000", grafana_api_key="key")

    def test_url_normalization(self):
        """Test that trailing slash is removed from URL."""
        settings = Settings(grafana_url="http://grafana:3000/", grafana_api_key="key")
        assert settings.grafana_url == "http://grafana:3000"

    def test_empty_api_key_rejected(self):
        """Test a blank API key is a configuration error."""
        with pytest.raises(ValidationError):
            Settings(grafana_url="http://grafana:3000", grafana_api_key="  ")

    def test_api_key_is_secret(self):
        """Test the API key is masked in repr."""
        settings = Settings(grafana_url="http://grafana:3000", grafana_api_key="glsa_secret")
        assert "glsa_secret" not in repr(settings)

    def test_timeout_validation(self):
        """Test timeout range validation."""
        base = {"grafana_url": "http://grafana:3000", "grafana_api_key": "key"}
        Settings(**base, timeout=1.0)
        Settings(**base, timeout=300.0)

        with pytest.raises(ValidationError):
            Settings(**base, timeout=0.5)

        with pytest.raises(ValidationError):
            Settings(**base, timeout=400.0)

    def test_port_validation(self):
        """Test port range validation."""
        base = {"grafana_url": "http://grafana:3000", "grafana_api_key": "key"}
        Settings(**base, port=1)
        Settings(**base, port=65535)

        with pytest.raises(ValidationError):
            Settings(**base, port=0)

        with pytest.raises(ValidationError):
            Settings(**base, port=65536)

    def test_log_format_validation(self):
        """Test log format accepts json/text only."""
        base = {"grafana_url": "http://grafana:3000", "grafana_api_key": "key"}
        assert Settings(**base, log_format="TEXT").log_format == "text"

        with pytest.raises(ValidationError):
            Settings(**base, log_format="xml")

    def test_get_auth_headers(self):
        """Test the API key is sent as a bearer token."""
        settings = Settings(grafana_url="http://grafana:3000", grafana_api_key="my-token")
        assert settings.get_auth_headers() == {"Authorization": "Bearer my-token"}


class TestServerMode:
    """Test ServerMode shell selection."""

    def test_mcp(self):
        assert ServerMode.MCP.uses_stdio
        assert not ServerMode.MCP.uses_http

    def test_http(self):
        assert not ServerMode.HTTP.uses_stdio
        assert ServerMode.HTTP.uses_http

    def test_both(self):
        assert ServerMode.BOTH.uses_stdio
        assert ServerMode.BOTH.uses_http


class TestEnvironmentConfig:
    """Test configuration from environment variables."""

    def test_env_variables(self, monkeypatch):
        """Test settings from environment variables."""
        monkeypatch.setenv("GRAFANA_URL", "http://env-grafana:3000")
        monkeypatch.setenv("GRAFANA_API_KEY", "env-key")
        monkeypatch.setenv("SERVER_MODE", "both")
        monkeypatch.setenv("PORT", "9000")
        monkeypatch.setenv("TIMEOUT", "60")
        monkeypatch.setenv("CORS_ORIGINS", '["https://n8n.example.com"]')

        settings = Settings()

        assert settings.grafana_url == "http://env-grafana:3000"
        assert settings.grafana_api_key.get_secret_value() == "env-key"
        assert settings.server_mode == ServerMode.BOTH
        assert settings.port == 9000
        assert settings.timeout == 60.0
        assert settings.cors_origins == ["https://n8n.example.com"]

    def test_explicit_values_override_env(self, monkeypatch):
        """Test init arguments take precedence over the environment."""
        monkeypatch.setenv("GRAFANA_URL", "http://env-grafana:3000")
        monkeypatch.setenv("GRAFANA_API_KEY", "env-key")

        settings = Settings(grafana_url="http://cli-grafana:3000")
        assert settings.grafana_url == "http://cli-grafana:3000"

    def test_cached_settings(self, monkeypatch):
        """Test settings caching."""
        monkeypatch.setenv("GRAFANA_URL", "http://grafana:3000")
        monkeypatch.setenv("GRAFANA_API_KEY", "key")
        clear_settings_cache()

        settings1 = get_settings()
        settings2 = get_settings()
        assert settings1 is settings2

        clear_settings_cache()
        settings3 = get_settings()
        assert settings1 is not settings3
