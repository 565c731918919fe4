"""Pytest configuration and fixtures."""

from __future__ import annotations

import pytest
import respx

from grafana_mcp_gateway.client import GrafanaClient
from grafana_mcp_gateway.config import Settings, clear_settings_cache

GRAFANA_URL = "http://grafana:3000"

ENV_VARS = (
    "GRAFANA_URL",
    "GRAFANA_API_KEY",
    "SERVER_MODE",
    "HOST",
    "PORT",
    "TIMEOUT",
    "DEFAULT_STEP",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "CORS_ORIGINS",
)


@pytest.fixture(autouse=True)
def clear_cache(monkeypatch):
    """Isolate tests from the caller's environment and the settings cache."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def settings() -> Settings:
    """Create test settings."""
    return Settings(
        grafana_url=GRAFANA_URL,
        grafana_api_key="test-key",
        timeout=5.0,
    )


@pytest.fixture
async def client(settings: Settings) -> GrafanaClient:
    """Create a test client."""
    client = GrafanaClient(settings=settings)
    await client.connect()
    yield client
    await client.close()


@pytest.fixture
def mock_grafana():
    """Mock Grafana API responses."""
    with respx.mock(base_url=GRAFANA_URL, assert_all_called=False) as mock:
        yield mock


# =============================================================================
# Common Mock Responses
# =============================================================================


@pytest.fixture
def datasources_response() -> list:
    """Mock /api/datasources response: two Prometheus sources, one default."""
    return [
        {
            "id": 1,
            "uid": "loki-1",
            "name": "Loki",
            "type": "loki",
            "isDefault": True,
            "url": "http://loki:3100",
            "access": "proxy",
        },
        {
            "id": 3,
            "uid": "prom-secondary",
            "name": "Prometheus Secondary",
            "type": "prometheus",
            "isDefault": False,
            "url": "http://prometheus-2:9090",
        },
        {
            "id": 2,
            "uid": "prom-main",
            "name": "Prometheus",
            "type": "prometheus",
            "isDefault": True,
            "url": "http://prometheus:9090",
        },
    ]


@pytest.fixture
def mock_datasources(mock_grafana, datasources_response: list):
    """Register the datasource listing route."""
    return mock_grafana.get("/api/datasources").respond(200, json=datasources_response)


@pytest.fixture
def vector_response() -> dict:
    """Mock instant query response with two series."""
    return {
        "status": "success",
        "data": {
            "resultType": "vector",
            "result": [
                {
                    "metric": {"__name__": "up", "job": "prometheus", "instance": "localhost:9090"},
                    "value": [1704067200, "1"],
                },
                {
                    "metric": {"__name__": "up", "job": "node", "instance": "localhost:9100"},
                    "value": [1704067200, "0"],
                },
            ],
        },
    }


@pytest.fixture
def single_vector_response() -> dict:
    """Mock instant query response with one series."""
    return {
        "status": "success",
        "data": {
            "resultType": "vector",
            "result": [
                {
                    "metric": {"instance": "localhost:9100"},
                    "value": [1704067200, "2147483648"],
                },
            ],
        },
    }


@pytest.fixture
def matrix_response() -> dict:
    """Mock range query response."""
    return {
        "status": "success",
        "data": {
            "resultType": "matrix",
            "result": [
                {
                    "metric": {"__name__": "up", "job": "prometheus"},
                    "values": [
                        [1704067200, "1"],
                        [1704067260, "1"],
                        [1704067320, "0"],
                    ],
                },
            ],
        },
    }


@pytest.fixture
def empty_response() -> dict:
    """Mock query response without series."""
    return {"status": "success", "data": {"resultType": "vector", "result": []}}


@pytest.fixture
def dashboard_response() -> dict:
    """Mock /api/dashboards/uid response with a collapsed row."""
    return {
        "dashboard": {
            "id": 7,
            "uid": "node-exporter",
            "title": "Node Exporter",
            "tags": ["linux", "node"],
            "version": 4,
            "time": {"from": "now-6h", "to": "now"},
            "panels": [
                {
                    "id": 1,
                    "title": "CPU Usage",
                    "type": "timeseries",
                    "description": "CPU busy percentage",
                    "targets": [
                        {"refId": "A", "expr": "rate(node_cpu_seconds_total[5m])"},
                        {"refId": "B", "expr": "node_load1"},
                    ],
                },
                {"id": 2, "title": "Notes", "type": "text"},
                {
                    "id": 10,
                    "title": "Memory",
                    "type": "row",
                    "collapsed": True,
                    "panels": [
                        {
                            "id": 11,
                            "title": "Memory Available",
                            "type": "stat",
                            "targets": [
                                {"refId": "A", "expr": "node_memory_MemAvailable_bytes"},
                            ],
                        },
                    ],
                },
            ],
        },
        "meta": {
            "url": "/d/node-exporter/node-exporter",
            "folderTitle": "Infrastructure",
        },
    }


@pytest.fixture
def search_response() -> list:
    """Mock /api/search response."""
    return [
        {
            "id": 7,
            "uid": "node-exporter",
            "title": "Node Exporter",
            "url": "/d/node-exporter/node-exporter",
            "type": "dash-db",
            "tags": ["linux", "node"],
            "folderTitle": "Infrastructure",
        },
        {
            "id": 8,
            "uid": "k8s-cluster",
            "title": "Kubernetes Cluster",
            "url": "/d/k8s-cluster/kubernetes-cluster",
            "type": "dash-db",
            "tags": [],
        },
    ]
