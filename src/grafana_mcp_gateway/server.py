"""
Grafana MCP Gateway server.

Wires one Grafana client, one datasource resolver and one tool table into
the transport shells chosen by ``SERVER_MODE``:

- mcp:  MCP tool-call protocol over stdio
- http: plain JSON API served by uvicorn
- both: the two shells concurrently in one event loop
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

import structlog
from mcp import types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server
from starlette.applications import Starlette

from grafana_mcp_gateway.client import GrafanaClient
from grafana_mcp_gateway.config import Settings, get_settings
from grafana_mcp_gateway.dispatcher import QueryDispatcher
from grafana_mcp_gateway.exceptions import GatewayError
from grafana_mcp_gateway.http_api import create_http_app
from grafana_mcp_gateway.resolver import DatasourceResolver
from grafana_mcp_gateway.tools import ToolDispatcher, ToolResult

logger = structlog.get_logger(__name__)

SERVER_NAME = "grafana-mcp-gateway"


class ToolCallFailed(Exception):
    """Raised inside the MCP call handler so the SDK marks the result isError."""

    def __init__(self, result: ToolResult) -> None:
        self.result = result
        super().__init__(result.to_text())


def format_error(error: Exception) -> str:
    """Format an error as JSON string."""
    if isinstance(error, GatewayError):
        payload: dict[str, Any] = {"error": error.code, "message": error.message}
        if error.details:
            payload["details"] = error.details
    else:
        payload = {"error": "internal_error", "message": str(error)}
    return json.dumps(payload, indent=2, default=str)


class GatewayServer:
    """Grafana MCP Gateway: one core, one or two transport shells."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self.client = GrafanaClient(settings=self.settings)
        self.resolver = DatasourceResolver(self.client)
        self.queries = QueryDispatcher(
            self.client,
            self.resolver,
            default_step=self.settings.default_step,
        )
        self.tools = ToolDispatcher(self.client, self.queries)
        self._mcp_server: Optional[Server] = None

    # ==========================================================================
    # MCP shell
    # ==========================================================================

    async def list_mcp_tools(self) -> list[types.Tool]:
        return [
            types.Tool(
                name=tool.name,
                description=tool.description,
                inputSchema=tool.parameter_schema,
            )
            for tool in self.tools.list_tools()
        ]

    async def call_mcp_tool(
        self, name: str, arguments: Optional[dict[str, Any]]
    ) -> list[types.TextContent]:
        """
        Route one MCP tool call through the tool dispatcher.

        Raises:
            ToolCallFailed: When the tool result is a failure
        """
        result = await self.tools.invoke(name, arguments or {})
        if not result.success:
            raise ToolCallFailed(result)
        return [types.TextContent(type="text", text=result.to_text())]

    @property
    def mcp_server(self) -> Server:
        """MCP protocol server, built on first use so HTTP-only mode never needs it."""
        if self._mcp_server is None:
            self._mcp_server = self.build_mcp_server()
        return self._mcp_server

    def build_mcp_server(self) -> Server:
        server: Server = Server(SERVER_NAME)

        @server.list_tools()
        async def handle_list_tools() -> list[types.Tool]:
            return await self.list_mcp_tools()

        @server.call_tool()
        async def handle_call_tool(
            name: str, arguments: dict[str, Any]
        ) -> list[types.TextContent]:
            return await self.call_mcp_tool(name, arguments)

        return server

    # ==========================================================================
    # HTTP shell
    # ==========================================================================

    def build_http_app(self) -> Starlette:
        return create_http_app(
            self.queries,
            self.tools,
            cors_origins=self.settings.cors_origins,
        )

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    async def verify_connectivity(self) -> dict[str, Any]:
        """
        Startup check: read the current organization with the configured key.

        Raises:
            GatewayError: If Grafana is unreachable or rejects the credential
        """
        org = await self.client.test_connection()
        logger.info("Grafana connection verified", org=org.get("name"))
        return org

    async def run(self) -> None:
        """Run the shells selected by the configured server mode."""
        mode = self.settings.server_mode
        try:
            await self.verify_connectivity()
            if mode.uses_stdio and mode.uses_http:
                await asyncio.gather(self.run_stdio(), self.run_http())
            elif mode.uses_http:
                await self.run_http()
            else:
                await self.run_stdio()
        finally:
            await self.close()

    async def run_stdio(self) -> None:
        """Run with stdio transport."""
        logger.info("Starting Grafana MCP Gateway (stdio)")
        server = self.mcp_server
        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options(),
            )

    async def run_http(self) -> None:
        """Run the JSON API with uvicorn."""
        import uvicorn

        host = self.settings.host
        port = self.settings.port

        logger.info("Starting Grafana MCP Gateway (http)", host=host, port=port)

        # Route uvicorn's loggers through the stderr-only root handler.
        config = uvicorn.Config(
            self.build_http_app(),
            host=host,
            port=port,
            log_config=None,
            log_level=self.settings.log_level.value.lower(),
        )
        server = uvicorn.Server(config)
        await server.serve()

    async def close(self) -> None:
        await self.client.close()


def create_server(settings: Optional[Settings] = None) -> GatewayServer:
    """Create a new Grafana MCP Gateway instance."""
    return GatewayServer(settings=settings)


if __name__ == "__main__":
    asyncio.run(create_server(get_settings()).run())
