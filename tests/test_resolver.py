"""Tests for Prometheus datasource resolution."""

from __future__ import annotations

import pytest
from httpx import Response

from grafana_mcp_gateway.client import GrafanaClient
from grafana_mcp_gateway.exceptions import NoBackendConfiguredError
from grafana_mcp_gateway.models import Datasource
from grafana_mcp_gateway.resolver import DatasourceResolver, select_prometheus_datasource


def _ds(id: int, type: str = "prometheus", is_default: bool = False) -> Datasource:
    return Datasource(id=id, name=f"ds-{id}", type=type, isDefault=is_default)


class TestSelectPrometheusDatasource:
    """Test datasource selection rules."""

    def test_prefers_default(self):
        chosen = select_prometheus_datasource([_ds(1), _ds(2, is_default=True), _ds(3)])
        assert chosen.id == 2

    def test_falls_back_to_first(self):
        chosen = select_prometheus_datasource([_ds(5, type="loki"), _ds(7), _ds(8)])
        assert chosen.id == 7

    def test_ignores_default_of_other_types(self):
        """A default non-Prometheus datasource never wins."""
        chosen = select_prometheus_datasource([_ds(1, type="loki", is_default=True), _ds(4)])
        assert chosen.id == 4

    def test_no_prometheus(self):
        with pytest.raises(NoBackendConfiguredError) as exc_info:
            select_prometheus_datasource([_ds(1, type="loki"), _ds(2, type="tempo")])

        assert exc_info.value.details == {"datasource_count": 2}

    def test_empty(self):
        with pytest.raises(NoBackendConfiguredError):
            select_prometheus_datasource([])


class TestDatasourceResolver:
    """Test DatasourceResolver caching."""

    @pytest.mark.asyncio
    async def test_resolve(self, client: GrafanaClient, mock_datasources):
        """Test the default Prometheus datasource becomes the proxy target."""
        resolver = DatasourceResolver(client)
        handle = await resolver.resolve()

        assert handle.datasource.id == 2
        assert handle.base_url == "http://grafana:3000/api/datasources/proxy/2"
        assert handle.headers["Authorization"] == "Bearer test-key"

    @pytest.mark.asyncio
    async def test_resolve_is_memoized(self, client: GrafanaClient, mock_datasources):
        """Test discovery runs once for the resolver's lifetime."""
        resolver = DatasourceResolver(client)
        assert resolver.cached is None

        first = await resolver.resolve()
        second = await resolver.resolve()

        assert first is second
        assert resolver.cached is first
        assert mock_datasources.call_count == 1

    @pytest.mark.asyncio
    async def test_no_backend_is_not_cached(self, client: GrafanaClient, mock_grafana):
        """Test a failed discovery leaves the cache empty."""
        route = mock_grafana.get("/api/datasources").mock(
            return_value=Response(200, json=[{"id": 1, "type": "loki"}])
        )
        resolver = DatasourceResolver(client)

        with pytest.raises(NoBackendConfiguredError):
            await resolver.resolve()
        with pytest.raises(NoBackendConfiguredError):
            await resolver.resolve()

        assert resolver.cached is None
        assert route.call_count == 2
