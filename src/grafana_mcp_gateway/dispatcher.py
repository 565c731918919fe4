"""
PromQL query dispatch through the Grafana datasource proxy.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from pydantic import ValidationError

from grafana_mcp_gateway.client import GrafanaClient
from grafana_mcp_gateway.dashboards import find_panel, panel_info
from grafana_mcp_gateway.exceptions import (
    GatewayError,
    PanelNotFoundError,
    QueryExecutionError,
)
from grafana_mcp_gateway.models import QueryRequest, QueryResult
from grafana_mcp_gateway.resolver import DatasourceResolver
from grafana_mcp_gateway.timeparams import DEFAULT_STEP, QueryMode, normalize

logger = structlog.get_logger(__name__)

NO_QUERIES_MESSAGE = "Panel has no configured queries"


@dataclass
class QueryExecution:
    """Outcome of one query: the verbatim envelope and its typed parse."""

    query: str
    mode: QueryMode
    params: dict[str, Any]
    raw: dict[str, Any]
    result: QueryResult


class QueryDispatcher:
    """
    Runs instant and range queries against the resolved Prometheus backend.

    The resolver is passed in explicitly and is the only state shared
    between calls.
    """

    def __init__(
        self,
        client: GrafanaClient,
        resolver: DatasourceResolver,
        default_step: str = DEFAULT_STEP,
    ) -> None:
        self.client = client
        self.resolver = resolver
        self.default_step = default_step

    async def execute(self, request: QueryRequest) -> QueryExecution:
        """
        Execute one PromQL request.

        Raises:
            NoBackendConfiguredError: If Grafana has no Prometheus datasource
            QueryExecutionError: On any upstream or Prometheus-reported failure
        """
        handle = await self.resolver.resolve()
        normalized = normalize(request, default_step=self.default_step)
        log = logger.bind(query=request.query, mode=normalized.mode.value)
        log.debug("Executing query", params=normalized.params)

        try:
            raw = await self.client.proxy_get(handle, normalized.path, normalized.params)
        except GatewayError as e:
            log.warning("Query failed", error=str(e))
            raise QueryExecutionError(f"Prometheus query failed: {e.message}", cause=e) from e

        if not isinstance(raw, dict):
            raise QueryExecutionError("Prometheus returned an unexpected response body")

        if raw.get("status") == "error":
            error_type = raw.get("errorType", "unknown")
            error_msg = raw.get("error", "Unknown error")
            log.warning("Prometheus error", error_type=error_type, error=error_msg)
            raise QueryExecutionError(
                f"{error_type}: {error_msg}",
                details={"errorType": error_type},
            )

        try:
            result = QueryResult.model_validate(raw)
        except ValidationError as e:
            raise QueryExecutionError(
                f"Unrecognized Prometheus response: {e.error_count()} validation errors",
                cause=e,
            ) from e

        return QueryExecution(
            query=request.query,
            mode=normalized.mode,
            params=normalized.params,
            raw=raw,
            result=result,
        )

    async def query_panel(
        self,
        dashboard_uid: str,
        panel_id: int,
        start: str = "now-1h",
        end: str = "now",
    ) -> dict[str, Any]:
        """
        Run every PromQL target of a dashboard panel over [start, end].

        A failing target aborts the whole panel fetch.

        Raises:
            PanelNotFoundError: If the panel id is not on the dashboard
        """
        payload = await self.client.get_dashboard_by_uid(dashboard_uid)
        panel = find_panel(payload.get("dashboard", {}), panel_id)
        if panel is None:
            raise PanelNotFoundError(dashboard_uid, panel_id)

        targets = panel.get("targets") or []
        if not targets:
            return {"panel": panel_info(panel), "message": NO_QUERIES_MESSAGE}

        results = []
        for target in targets:
            expr = target.get("expr")
            if not expr:
                continue
            execution = await self.execute(QueryRequest(query=expr, start=start, end=end))
            results.append(
                {
                    "refId": target.get("refId"),
                    "query": expr,
                    "data": execution.raw,
                }
            )

        logger.info(
            "Panel queried",
            dashboard_uid=dashboard_uid,
            panel_id=panel_id,
            targets=len(results),
        )
        return {
            "panel": panel_info(panel),
            "timeRange": {"from": start, "to": end},
            "results": results,
        }
