"""
Prometheus datasource discovery.

The resolver picks the Prometheus datasource queries are proxied to and
keeps that choice for the lifetime of the client.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

import structlog

from grafana_mcp_gateway.client import GrafanaClient
from grafana_mcp_gateway.exceptions import NoBackendConfiguredError
from grafana_mcp_gateway.models import Datasource

logger = structlog.get_logger(__name__)

PROMETHEUS_TYPE = "prometheus"


@dataclass(frozen=True)
class BackendHandle:
    """Proxy address and auth headers for one Prometheus datasource."""

    datasource: Datasource
    base_url: str
    headers: dict[str, str] = field(default_factory=dict, hash=False, compare=False)


def select_prometheus_datasource(datasources: Sequence[Datasource]) -> Datasource:
    """
    Pick the default Prometheus datasource, else the first Prometheus one.

    Raises:
        NoBackendConfiguredError: If no datasource has type 'prometheus'
    """
    candidates = [ds for ds in datasources if ds.type == PROMETHEUS_TYPE]
    if not candidates:
        raise NoBackendConfiguredError(
            "No Prometheus datasource is configured in Grafana",
            {"datasource_count": len(datasources)},
        )
    for ds in candidates:
        if ds.is_default:
            return ds
    return candidates[0]


class DatasourceResolver:
    """
    Memoizing resolver for the Prometheus backend.

    The first ``resolve()`` lists datasources; later calls return the cached
    handle. The cache is never invalidated, and concurrent first calls may
    each run discovery since the write is not locked.
    """

    def __init__(self, client: GrafanaClient) -> None:
        self.client = client
        self._handle: Optional[BackendHandle] = None

    @property
    def cached(self) -> Optional[BackendHandle]:
        return self._handle

    async def resolve(self) -> BackendHandle:
        if self._handle is not None:
            return self._handle

        datasources = await self.client.get_datasources()
        datasource = select_prometheus_datasource(datasources)

        self._handle = BackendHandle(
            datasource=datasource,
            base_url=f"{self.client.base_url}/api/datasources/proxy/{datasource.id}",
            headers=self.client.headers,
        )
        logger.info(
            "Resolved Prometheus datasource",
            datasource=datasource.name,
            datasource_id=datasource.id,
            is_default=datasource.is_default,
        )
        return self._handle
