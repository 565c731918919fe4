"""
Tool table shared by the MCP stdio shell and the HTTP shell.

Every tool is a name, a description, a pydantic argument model (its JSON
schema is what callers see) and an async handler. ``ToolDispatcher.invoke``
validates, routes and wraps results uniformly and never raises.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

import structlog
from pydantic import BaseModel, ValidationError

from grafana_mcp_gateway.client import GrafanaClient
from grafana_mcp_gateway.dashboards import summarize_dashboard, summarize_search_hit
from grafana_mcp_gateway.dispatcher import QueryDispatcher
from grafana_mcp_gateway.exceptions import (
    GatewayError,
    ToolValidationError,
    UnknownToolError,
)
from grafana_mcp_gateway.formatter import summarize
from grafana_mcp_gateway.models import (
    CreateSnapshotArgs,
    GetDashboardArgs,
    GetPanelDataArgs,
    ListDashboardsArgs,
    NoArgs,
    QueryPrometheusArgs,
    dump_model,
)

logger = structlog.get_logger(__name__)

Handler = Callable[["ToolDispatcher", Any], Awaitable[Any]]


@dataclass(frozen=True)
class ToolDescriptor:
    """Static description of one tool."""

    name: str
    description: str
    args_model: type[BaseModel] = field(repr=False)
    handler: Handler = field(repr=False, compare=False)

    @property
    def parameter_schema(self) -> dict[str, Any]:
        return self.args_model.model_json_schema()

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameterSchema": self.parameter_schema,
        }


@dataclass
class ToolResult:
    """Uniform tool outcome for both transports."""

    success: bool
    tool: str
    data: Any = None
    error: Optional[dict[str, Any]] = None
    http_status: int = 200

    @classmethod
    def ok(cls, tool: str, data: Any) -> "ToolResult":
        return cls(success=True, tool=tool, data=data)

    @classmethod
    def fail(cls, tool: str, error: GatewayError) -> "ToolResult":
        payload: dict[str, Any] = {"code": error.code, "message": error.message}
        field_name = getattr(error, "field", None)
        if field_name:
            payload["field"] = field_name
        cause = getattr(error, "cause", None)
        if cause is not None:
            payload["cause"] = type(cause).__name__
        if error.details:
            payload["details"] = error.details
        return cls(success=False, tool=tool, error=payload, http_status=error.http_status)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": self.success, "tool": self.tool}
        if self.success:
            body["data"] = self.data
        else:
            body["error"] = self.error
        return body

    def to_text(self) -> str:
        return json.dumps(self.data if self.success else self.to_dict(), indent=2, default=str)


def validation_error_from(exc: ValidationError) -> ToolValidationError:
    """Turn the first pydantic error into a ToolValidationError naming its field."""
    first = exc.errors()[0]
    field_name = ".".join(str(part) for part in first.get("loc", ())) or None
    message = first.get("msg", "Invalid arguments")
    if field_name:
        message = f"{field_name}: {message}"
    return ToolValidationError(message, field=field_name)


# ==========================================================================
# Handlers
# ==========================================================================


async def _query_prometheus(dispatcher: "ToolDispatcher", args: QueryPrometheusArgs) -> dict[str, Any]:
    execution = await dispatcher.queries.execute(args)
    return {
        "query": execution.query,
        "mode": execution.mode.value,
        "status": execution.result.status,
        "resultType": execution.result.result_type,
        "summary": summarize(execution.result, args.description),
        "data": execution.raw.get("data"),
        "warnings": execution.result.warnings,
    }


async def _get_dashboard(dispatcher: "ToolDispatcher", args: GetDashboardArgs) -> dict[str, Any]:
    payload = await dispatcher.client.get_dashboard(args.identifier, args.type)
    return summarize_dashboard(payload)


async def _list_dashboards(dispatcher: "ToolDispatcher", args: ListDashboardsArgs) -> dict[str, Any]:
    hits = await dispatcher.client.search_dashboards(query=args.query, limit=args.limit)
    dashboards = [summarize_search_hit(hit) for hit in hits]
    return {"count": len(dashboards), "dashboards": dashboards}


async def _get_panel_data(dispatcher: "ToolDispatcher", args: GetPanelDataArgs) -> dict[str, Any]:
    return await dispatcher.queries.query_panel(
        args.dashboard_uid, args.panel_id, start=args.from_, end=args.to
    )


async def _get_datasources(dispatcher: "ToolDispatcher", args: NoArgs) -> dict[str, Any]:
    datasources = [dump_model(ds) for ds in await dispatcher.client.get_datasources()]
    return {"count": len(datasources), "datasources": datasources}


async def _create_snapshot(dispatcher: "ToolDispatcher", args: CreateSnapshotArgs) -> dict[str, Any]:
    payload = await dispatcher.client.get_dashboard_by_uid(args.dashboard_uid)
    dashboard = payload.get("dashboard", {})
    snapshot = await dispatcher.client.create_snapshot(
        dashboard,
        name=f"Snapshot of {dashboard.get('title', args.dashboard_uid)}",
        expires=args.expires,
    )
    return {
        "key": snapshot.get("key"),
        "url": snapshot.get("url"),
        "deleteKey": snapshot.get("deleteKey"),
        "deleteUrl": snapshot.get("deleteUrl"),
        "id": snapshot.get("id"),
        "expires": args.expires,
    }


_QUERY_DESCRIPTION = (
    "Execute a PromQL query against the Prometheus datasource configured in "
    "Grafana. Provide start and end for a range query (step defaults to 1m); "
    "otherwise an instant query runs at 'time' or now. Returns the raw result "
    "and a one-line summary."
)
_DASHBOARD_DESCRIPTION = "Get a dashboard's metadata and its panels with their queries."
_LIST_DESCRIPTION = "Search dashboards by title; returns uid, title, url, tags and folder."

TOOLS: tuple[ToolDescriptor, ...] = (
    ToolDescriptor("query_prometheus", _QUERY_DESCRIPTION, QueryPrometheusArgs, _query_prometheus),
    ToolDescriptor("get_dashboard", _DASHBOARD_DESCRIPTION, GetDashboardArgs, _get_dashboard),
    ToolDescriptor("get_dashboard_details", _DASHBOARD_DESCRIPTION, GetDashboardArgs, _get_dashboard),
    ToolDescriptor("list_dashboards", _LIST_DESCRIPTION, ListDashboardsArgs, _list_dashboards),
    ToolDescriptor("get_dashboards", _LIST_DESCRIPTION, ListDashboardsArgs, _list_dashboards),
    ToolDescriptor(
        "get_panel_data",
        "Run the Prometheus queries of a dashboard panel over a time range "
        "(default now-1h to now); results are keyed by the target refId.",
        GetPanelDataArgs,
        _get_panel_data,
    ),
    ToolDescriptor(
        "get_datasources",
        "List configured Grafana datasources (id, uid, name, type, isDefault, url).",
        NoArgs,
        _get_datasources,
    ),
    ToolDescriptor(
        "create_snapshot",
        "Create a snapshot of a dashboard; expires in seconds (default 3600).",
        CreateSnapshotArgs,
        _create_snapshot,
    ),
)


class ToolDispatcher:
    """Routes tool calls by name to the query dispatcher or Grafana passthroughs."""

    def __init__(
        self,
        client: GrafanaClient,
        queries: QueryDispatcher,
        tools: tuple[ToolDescriptor, ...] = TOOLS,
    ) -> None:
        self.client = client
        self.queries = queries
        self._tools = {tool.name: tool for tool in tools}

    def list_tools(self) -> list[ToolDescriptor]:
        return list(self._tools.values())

    def get_tool(self, name: str) -> ToolDescriptor:
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(name) from None

    async def invoke(self, name: str, args: Optional[dict[str, Any]] = None) -> ToolResult:
        log = logger.bind(tool=name)
        try:
            tool = self.get_tool(name)
        except UnknownToolError as e:
            log.warning("Unknown tool")
            return ToolResult.fail(name, e)

        try:
            parsed = tool.args_model.model_validate(args or {})
        except ValidationError as e:
            error = validation_error_from(e)
            log.warning("Invalid tool arguments", field=error.field, error=error.message)
            return ToolResult.fail(name, error)

        try:
            data = await tool.handler(self, parsed)
        except GatewayError as e:
            log.warning("Tool failed", error_code=e.code, error=str(e))
            return ToolResult.fail(name, e)
        except Exception as e:
            log.exception("Unexpected tool error")
            return ToolResult.fail(name, GatewayError(f"Internal error: {e}"))

        log.debug("Tool succeeded")
        return ToolResult.ok(name, data)
