"""
Plain HTTP JSON shell for workflow tools (n8n and similar).

Exposes the Prometheus query endpoint and the shared tool table over HTTP;
every handler converts errors into a JSON body with an error status.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from grafana_mcp_gateway import __version__
from grafana_mcp_gateway.dispatcher import QueryDispatcher
from grafana_mcp_gateway.exceptions import GatewayError
from grafana_mcp_gateway.formatter import summarize
from grafana_mcp_gateway.models import QueryPrometheusArgs
from grafana_mcp_gateway.tools import ToolDispatcher, validation_error_from

logger = structlog.get_logger(__name__)

SERVICE_NAME = "Grafana MCP Gateway"
QUERY_FAILED_MESSAGE = "Query failed to execute"

QUERY_EXAMPLES = [
    {
        "name": "Memory Usage",
        "query": "(1 - (node_memory_MemAvailable_bytes / node_memory_MemTotal_bytes)) * 100",
        "description": "Current memory usage percentage",
    },
    {
        "name": "CPU Usage",
        "query": '100 - (avg by (instance) (irate(node_cpu_seconds_total{mode="idle"}[5m])) * 100)',
        "description": "Current CPU usage percentage",
    },
    {
        "name": "Service Status",
        "query": "up",
        "description": "Check if services are up",
    },
    {
        "name": "Memory Available",
        "query": "node_memory_MemAvailable_bytes",
        "description": "Available memory in bytes",
    },
]


def _elapsed(started: float) -> str:
    return f"{int((time.perf_counter() - started) * 1000)}ms"


def _query_response(
    *,
    success: bool,
    query: str,
    result_type: str,
    human_readable: str,
    data: Any,
    started: float,
    error: Optional[str] = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "success": success,
        "query": query,
        "result_type": result_type,
        "human_readable": human_readable,
        "data": data,
        "execution_time": _elapsed(started),
    }
    if error is not None:
        body["error"] = error
    return body


def create_http_app(
    queries: QueryDispatcher,
    tools: ToolDispatcher,
    cors_origins: Optional[list[str]] = None,
) -> Starlette:
    """Build the Starlette application around an already constructed core."""

    async def health_endpoint(request: Request) -> JSONResponse:
        grafana_up = await tools.client.is_healthy()
        return JSONResponse(
            {
                "status": "healthy",
                "service": SERVICE_NAME,
                "grafana": "up" if grafana_up else "down",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )

    async def root_endpoint(request: Request) -> JSONResponse:
        return JSONResponse(
            {
                "service": SERVICE_NAME,
                "version": __version__,
                "endpoints": {
                    "prometheus": "/api/prometheus/query",
                    "tools": "/api/tools",
                    "health": "/health",
                    "docs": "/docs",
                },
            }
        )

    async def docs_endpoint(request: Request) -> JSONResponse:
        return JSONResponse(
            {
                "title": f"{SERVICE_NAME} API",
                "version": __version__,
                "endpoints": {
                    "POST /api/prometheus/query": {
                        "description": "Execute Prometheus queries",
                        "body": QueryPrometheusArgs.model_json_schema(),
                        "examples": QUERY_EXAMPLES,
                    },
                    "GET /api/tools": {"description": "List available tools"},
                    "POST /api/tools/{name}": {
                        "description": "Invoke a tool with a JSON object of arguments",
                    },
                    "GET /health": {"description": "Liveness check with Grafana reachability"},
                },
                "tools": [tool.describe() for tool in tools.list_tools()],
                "usage_for_n8n": {
                    "node_type": "HTTP Request",
                    "method": "POST",
                    "url": f"{request.base_url}api/prometheus/query",
                    "headers": {"Content-Type": "application/json"},
                    "body_example": {"query": "up", "description": "Check service health"},
                },
            }
        )

    async def prometheus_query_endpoint(request: Request) -> JSONResponse:
        started = time.perf_counter()
        try:
            body = await request.json()
        except ValueError:
            body = None

        if not isinstance(body, dict) or not body.get("query"):
            return JSONResponse(
                {
                    "success": False,
                    "error": "Query parameter is required",
                    "example": {"query": "up", "description": "Check service status"},
                },
                status_code=400,
            )

        query = str(body.get("query"))
        try:
            args = QueryPrometheusArgs.model_validate(body)
        except ValidationError as e:
            error = validation_error_from(e)
            return JSONResponse(
                _query_response(
                    success=False,
                    query=query,
                    result_type="instant",
                    human_readable=QUERY_FAILED_MESSAGE,
                    data=None,
                    started=started,
                    error=error.message,
                ),
                status_code=error.http_status,
            )

        result_type = "range" if args.is_range else "instant"
        try:
            execution = await queries.execute(args)
        except GatewayError as e:
            logger.warning("HTTP query failed", query=query, error=str(e))
            return JSONResponse(
                _query_response(
                    success=False,
                    query=query,
                    result_type=result_type,
                    human_readable=QUERY_FAILED_MESSAGE,
                    data=None,
                    started=started,
                    error=e.message,
                ),
                status_code=e.http_status,
            )

        return JSONResponse(
            _query_response(
                success=True,
                query=query,
                result_type=execution.mode.value,
                human_readable=summarize(execution.result, args.description),
                data=execution.raw,
                started=started,
            )
        )

    async def list_tools_endpoint(request: Request) -> JSONResponse:
        return JSONResponse({"tools": [tool.describe() for tool in tools.list_tools()]})

    async def invoke_tool_endpoint(request: Request) -> JSONResponse:
        name = request.path_params["name"]
        raw = await request.body()
        try:
            args = await request.json() if raw else {}
        except ValueError:
            return JSONResponse(
                {
                    "success": False,
                    "tool": name,
                    "error": {"code": "validation_error", "message": "Body must be JSON"},
                },
                status_code=400,
            )
        if not isinstance(args, dict):
            return JSONResponse(
                {
                    "success": False,
                    "tool": name,
                    "error": {
                        "code": "validation_error",
                        "message": "Body must be a JSON object",
                    },
                },
                status_code=400,
            )

        result = await tools.invoke(name, args)
        return JSONResponse(result.to_dict(), status_code=result.http_status)

    routes = [
        Route("/", root_endpoint, methods=["GET"]),
        Route("/health", health_endpoint, methods=["GET"]),
        Route("/docs", docs_endpoint, methods=["GET"]),
        Route("/api/prometheus/query", prometheus_query_endpoint, methods=["POST"]),
        Route("/api/tools", list_tools_endpoint, methods=["GET"]),
        Route("/api/tools/{name}", invoke_tool_endpoint, methods=["POST"]),
    ]
    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=cors_origins or ["*"],
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
        )
    ]
    return Starlette(routes=routes, middleware=middleware)
