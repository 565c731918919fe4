"""
Grafana MCP Gateway

Exposes Prometheus queries (through Grafana's datasource proxy) and Grafana
dashboards as tools for AI agents, over MCP stdio and a plain HTTP JSON API.
"""

__version__ = "1.0.0"

from grafana_mcp_gateway.config import Settings, get_settings
from grafana_mcp_gateway.client import GrafanaClient
from grafana_mcp_gateway.server import create_server, GatewayServer

__all__ = [
    "create_server",
    "GatewayServer",
    "GrafanaClient",
    "Settings",
    "get_settings",
    "__version__",
]
