"""
Command-line interface for Grafana MCP Gateway.

Runs the gateway in mcp, http or both modes and offers a few
operator commands (connectivity check, tool listing, config template).
"""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import Any, Optional

import click
import structlog
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from grafana_mcp_gateway import __version__
from grafana_mcp_gateway.client import GrafanaClient
from grafana_mcp_gateway.config import Settings, clear_settings_cache
from grafana_mcp_gateway.exceptions import ConfigurationError, GatewayError
from grafana_mcp_gateway.resolver import DatasourceResolver
from grafana_mcp_gateway.server import create_server, format_error
from grafana_mcp_gateway.tools import TOOLS

console = Console()
# stdout belongs to the MCP stdio protocol while the server runs.
err_console = Console(stderr=True)


def setup_logging(level: str, format: str) -> None:
    """Configure structlog for the application."""
    import logging

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        stream=sys.stderr,
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def load_settings(**overrides: Any) -> Settings:
    """
    Build settings from the environment, with explicit options taking precedence.

    Raises:
        ConfigurationError: If required settings are missing or invalid
    """
    clear_settings_cache()
    try:
        return Settings(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise ConfigurationError(
            f"Invalid configuration: {e.error_count()} error(s)",
            {"fields": missing},
        ) from e


def print_banner() -> None:
    """Print the startup banner."""
    banner = """
[bold blue]Grafana MCP Gateway[/bold blue]
[dim]Prometheus metrics and Grafana dashboards for AI agents[/dim]
    """
    console.print(Panel(banner, border_style="blue"))


def print_config(settings: Settings) -> None:
    """Print current configuration."""
    table = Table(title="Configuration", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Grafana URL", settings.grafana_url)
    table.add_row("Server Mode", settings.server_mode.value)
    table.add_row("Timeout", f"{settings.timeout}s")
    table.add_row("Default Step", settings.default_step)
    table.add_row("Log Level", settings.log_level.value)

    if settings.server_mode.uses_http:
        table.add_row("Host", settings.host)
        table.add_row("Port", str(settings.port))

    console.print(table)
    console.print()


def _raise_keyboard_interrupt(signum: int, frame: Any) -> None:
    raise KeyboardInterrupt


@click.group(invoke_without_command=True)
@click.option("--grafana-url", help="Grafana base URL (env: GRAFANA_URL)")
@click.option("--api-key", help="Grafana API key or service account token (env: GRAFANA_API_KEY)")
@click.option(
    "--mode",
    type=click.Choice(["mcp", "http", "both"]),
    help="mcp (stdio), http (JSON API) or both (env: SERVER_MODE, default: mcp)",
)
@click.option("--host", help="Host for the HTTP server (env: HOST, default: 0.0.0.0)")
@click.option("--port", type=int, help="Port for the HTTP server (env: PORT, default: 8080)")
@click.option("--timeout", type=float, help="Request timeout in seconds (env: TIMEOUT, default: 30)")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Log level (env: LOG_LEVEL, default: INFO)",
)
@click.option(
    "--log-format",
    type=click.Choice(["json", "text"]),
    help="Log format (env: LOG_FORMAT, default: json)",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Suppress banner and config output",
)
@click.version_option(version=__version__, prog_name="grafana-mcp-gateway")
@click.pass_context
def main(
    ctx: click.Context,
    grafana_url: Optional[str],
    api_key: Optional[str],
    mode: Optional[str],
    host: Optional[str],
    port: Optional[int],
    timeout: Optional[float],
    log_level: Optional[str],
    log_format: Optional[str],
    quiet: bool,
) -> None:
    """
    Grafana MCP Gateway - Prometheus queries and Grafana dashboards for AI agents.

    Exposes a small tool set over the MCP stdio protocol and as a plain
    HTTP JSON API for workflow tools such as n8n.

    \b
    Examples:
      # Run with stdio (for MCP clients)
      GRAFANA_URL=http://grafana:3000 GRAFANA_API_KEY=glsa_xxx grafana-mcp-gateway

      # Run the HTTP API on port 8080
      grafana-mcp-gateway --mode http --port 8080

      # Serve both at once
      grafana-mcp-gateway --mode both
    """
    if ctx.invoked_subcommand is not None:
        return

    try:
        settings = load_settings(
            grafana_url=grafana_url,
            grafana_api_key=api_key,
            server_mode=mode,
            host=host,
            port=port,
            timeout=timeout,
            log_level=log_level,
            log_format=log_format,
        )
    except ConfigurationError as e:
        err_console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)

    setup_logging(settings.log_level.value, settings.log_format)

    if not quiet and not settings.server_mode.uses_stdio:
        print_banner()
        print_config(settings)

    signal.signal(signal.SIGTERM, _raise_keyboard_interrupt)
    server = create_server(settings)

    try:
        asyncio.run(server.run())
    except KeyboardInterrupt:
        if not quiet:
            err_console.print("\n[yellow]Shutting down...[/yellow]")
    except GatewayError as e:
        err_console.print(f"[red]Startup failed:[/red] {format_error(e)}")
        sys.exit(1)
    except Exception as e:
        err_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


@main.command()
@click.option("--grafana-url", help="Grafana base URL (env: GRAFANA_URL)")
@click.option("--api-key", help="Grafana API key (env: GRAFANA_API_KEY)")
def check(grafana_url: Optional[str], api_key: Optional[str]) -> None:
    """Check connectivity to Grafana and Prometheus datasource discovery."""
    try:
        settings = load_settings(grafana_url=grafana_url, grafana_api_key=api_key)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)

    console.print(f"[cyan]Checking connection to:[/cyan] {settings.grafana_url}")

    async def do_check() -> None:
        async with GrafanaClient(settings=settings) as client:
            org = await client.test_connection()
            console.print(f"[green]✓[/green] Authenticated (organization: {org.get('name', 'unknown')})")

            handle = await DatasourceResolver(client).resolve()
            console.print(
                f"[green]✓[/green] Prometheus datasource: {handle.datasource.name} "
                f"(id {handle.datasource.id})"
            )

    try:
        asyncio.run(do_check())
        console.print("\n[green]Connection successful![/green]")
    except GatewayError as e:
        console.print(f"\n[red]Connection failed:[/red] {format_error(e)}")
        sys.exit(1)


@main.command()
def tools() -> None:
    """List all available tools."""
    table = Table(title="Available Tools", show_header=True)
    table.add_column("Tool", style="cyan", width=24)
    table.add_column("Description", style="white")

    for tool in TOOLS:
        table.add_row(tool.name, tool.description)

    console.print(table)


@main.command()
def config_template() -> None:
    """Generate a .env configuration template."""
    template = """# Grafana MCP Gateway Configuration
# Copy this to .env and modify as needed

# Grafana Connection (required)
GRAFANA_URL=http://localhost:3000
GRAFANA_API_KEY=your-service-account-token

# Server (mcp, http, both)
SERVER_MODE=mcp
HOST=0.0.0.0
PORT=8080
# CORS_ORIGINS=["*"]

# HTTP Client
TIMEOUT=30

# Queries
DEFAULT_STEP=1m

# Logging
LOG_LEVEL=INFO
LOG_FORMAT=json
"""
    click.echo(template)


if __name__ == "__main__":
    main()
