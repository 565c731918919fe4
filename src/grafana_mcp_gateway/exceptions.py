"""
Custom exceptions for Grafana MCP Gateway.
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base exception for all Grafana MCP Gateway errors."""

    code = "internal_error"
    http_status = 500

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class ConfigurationError(GatewayError):
    """Raised when configuration is missing or invalid."""

    code = "configuration_error"


class AuthenticationError(GatewayError):
    """Raised when Grafana rejects the API credential."""

    code = "authentication_error"
    http_status = 401


class ConnectivityError(GatewayError):
    """Raised when Grafana cannot be reached."""

    code = "connectivity_error"
    http_status = 502


class GatewayTimeoutError(ConnectivityError):
    """Raised when a request to Grafana exceeds the configured deadline."""

    code = "timeout_error"
    http_status = 504


class GrafanaAPIError(GatewayError):
    """Raised when the Grafana API answers with an error status."""

    code = "api_error"
    http_status = 502

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict | None = None,
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code


class NoBackendConfiguredError(GatewayError):
    """Raised when Grafana has no Prometheus datasource configured."""

    code = "no_backend_configured"
    http_status = 503


class PanelNotFoundError(GatewayError):
    """Raised when a panel id does not exist on a dashboard."""

    code = "panel_not_found"
    http_status = 404

    def __init__(self, dashboard_uid: str, panel_id: int) -> None:
        super().__init__(
            f"Panel {panel_id} not found in dashboard {dashboard_uid}",
            {"dashboard_uid": dashboard_uid, "panel_id": panel_id},
        )
        self.dashboard_uid = dashboard_uid
        self.panel_id = panel_id


class UnknownToolError(GatewayError):
    """Raised when a tool name is not in the descriptor table."""

    code = "unknown_tool"
    http_status = 404

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class ToolValidationError(GatewayError):
    """Raised when tool arguments do not match the declared schema."""

    code = "validation_error"
    http_status = 400

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict | None = None,
    ) -> None:
        super().__init__(message, details)
        self.field = field


class QueryExecutionError(GatewayError):
    """Raised when a PromQL query fails upstream or Prometheus reports an error."""

    code = "query_execution_failed"
    http_status = 502

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        details: dict | None = None,
    ) -> None:
        super().__init__(message, details)
        self.cause = cause
