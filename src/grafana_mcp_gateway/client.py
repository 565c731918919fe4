"""
Grafana HTTP API client with connection pooling and error handling.

All Prometheus traffic goes through Grafana's datasource proxy, so a single
client (one base URL, one bearer credential) serves both the Grafana API and
the metrics backend.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

import httpx
import structlog

from grafana_mcp_gateway.config import Settings, get_settings
from grafana_mcp_gateway.exceptions import (
    AuthenticationError,
    ConnectivityError,
    GatewayError,
    GatewayTimeoutError,
    GrafanaAPIError,
)
from grafana_mcp_gateway.models import Datasource

if TYPE_CHECKING:
    from grafana_mcp_gateway.resolver import BackendHandle

logger = structlog.get_logger(__name__)


class GrafanaClient:
    """
    Async Grafana HTTP API client.

    Example:
        ```python
        async with GrafanaClient(settings) as client:
            dashboards = await client.search_dashboards(query="node")
        ```
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self._client: Optional[httpx.AsyncClient] = None
        self._log = logger.bind(grafana_url=self.settings.grafana_url)

    async def __aenter__(self) -> "GrafanaClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    @property
    def base_url(self) -> str:
        return self.settings.grafana_url

    @property
    def headers(self) -> dict[str, str]:
        """Default headers sent with every request, credential included."""
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": "grafana-mcp-gateway/1.0.0",
        }
        headers.update(self.settings.get_auth_headers())
        return headers

    async def connect(self) -> None:
        """Create the pooled HTTP client."""
        if self._client is not None:
            return

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.settings.timeout),
            headers=self.headers,
        )
        self._log.info("Connected to Grafana")

    async def close(self) -> None:
        """Close the connection."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            self._log.info("Disconnected from Grafana")

    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        json_data: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """
        Make a single HTTP request and decode its JSON body.

        No retries are attempted; the first failure is raised.

        Raises:
            AuthenticationError: On 401/403
            GrafanaAPIError: On any other error status or a non-JSON body
            ConnectivityError: On transport errors
            GatewayTimeoutError: When the request deadline is exceeded
        """
        if self._client is None:
            await self.connect()

        assert self._client is not None

        log = self._log.bind(method=method, url=url)

        try:
            response = await self._client.request(
                method=method,
                url=url,
                params=params,
                json=json_data,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            log.error("Request timeout", error=str(e))
            raise GatewayTimeoutError(f"Request timeout: {e}") from e
        except httpx.TransportError as e:
            log.error("Connection error", error=str(e))
            raise ConnectivityError(f"Connection error: {e}") from e

        if response.status_code >= 400:
            error_detail = response.text or response.reason_phrase
            try:
                error_json = response.json()
                if isinstance(error_json, dict):
                    error_detail = (
                        error_json.get("error")
                        or error_json.get("message")
                        or error_detail
                    )
            except ValueError:
                pass

            log.error("API error", status_code=response.status_code, error=error_detail)

            if response.status_code == 401:
                raise AuthenticationError(f"Authentication failed: {error_detail}")
            elif response.status_code == 403:
                raise AuthenticationError(f"Access denied: {error_detail}")
            raise GrafanaAPIError(
                f"HTTP {response.status_code}: {error_detail}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            log.error("Failed to parse response", error=str(e))
            raise GrafanaAPIError(
                f"Invalid JSON response: {e}", status_code=response.status_code
            ) from e

    # ==========================================================================
    # Organization / health
    # ==========================================================================

    async def test_connection(self) -> dict[str, Any]:
        """
        Verify the URL and credential by reading the current organization.

        Returns:
            Organization info (id, name)
        """
        return await self._request("GET", "/api/org")

    async def is_healthy(self) -> bool:
        """Check Grafana's own health endpoint."""
        try:
            await self._request("GET", "/api/health")
            return True
        except GatewayError as e:
            self._log.warning("Health check failed", error=str(e))
            return False

    # ==========================================================================
    # Dashboards
    # ==========================================================================

    async def search_dashboards(
        self,
        query: Optional[str] = None,
        limit: int = 10,
    ) -> list[dict[str, Any]]:
        """
        Search dashboards by title.

        Args:
            query: Search text (empty matches everything)
            limit: Maximum number of hits

        Returns:
            Search hits (uid, title, url, tags, folderTitle, ...)
        """
        params: dict[str, Any] = {"type": "dash-db", "limit": limit}
        if query:
            params["query"] = query
        return await self._request("GET", "/api/search", params=params)

    async def get_dashboard_by_uid(self, uid: str) -> dict[str, Any]:
        """
        Get a dashboard and its metadata by UID.

        Returns:
            Dict with 'dashboard' and 'meta'
        """
        return await self._request("GET", f"/api/dashboards/uid/{uid}")

    async def get_dashboard_by_id(self, dashboard_id: int) -> dict[str, Any]:
        """
        Get a dashboard by numeric ID.

        Grafana only serves dashboards by UID, so the ID is first resolved
        through the search API.
        """
        hits = await self._request(
            "GET",
            "/api/search",
            params={"dashboardIds": dashboard_id, "type": "dash-db"},
        )
        if not hits:
            raise GrafanaAPIError(
                f"Dashboard with id {dashboard_id} not found", status_code=404
            )
        return await self.get_dashboard_by_uid(hits[0]["uid"])

    async def get_dashboard(self, identifier: str, id_type: str = "uid") -> dict[str, Any]:
        """Get a dashboard by UID or by numeric ID."""
        if id_type == "id":
            return await self.get_dashboard_by_id(int(identifier))
        return await self.get_dashboard_by_uid(identifier)

    # ==========================================================================
    # Datasources
    # ==========================================================================

    async def get_datasources(self) -> list[Datasource]:
        """
        List configured datasources.

        Returns:
            Datasource models (extra Grafana fields dropped)
        """
        data = await self._request("GET", "/api/datasources")
        return [Datasource.model_validate(ds) for ds in data]

    async def proxy_get(
        self,
        handle: "BackendHandle",
        path: str,
        params: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """
        Issue a GET through a datasource proxy handle.

        Args:
            handle: Resolved backend handle
            path: Backend API path, e.g. '/api/v1/query'
            params: Query parameters

        Returns:
            Decoded JSON body
        """
        self._log.debug("Proxy request", datasource=handle.datasource.name, path=path)
        return await self._request(
            "GET",
            f"{handle.base_url}{path}",
            params=params,
            headers=handle.headers,
        )

    # ==========================================================================
    # Snapshots
    # ==========================================================================

    async def create_snapshot(
        self,
        dashboard: dict[str, Any],
        name: str,
        expires: int = 3600,
    ) -> dict[str, Any]:
        """
        Create a dashboard snapshot.

        Args:
            dashboard: Full dashboard model
            name: Snapshot name
            expires: Lifetime in seconds, 0 keeps it forever

        Returns:
            Dict with key, deleteKey, url, deleteUrl and id
        """
        self._log.info("Creating snapshot", name=name, expires=expires)
        return await self._request(
            "POST",
            "/api/snapshots",
            json_data={"dashboard": dashboard, "name": name, "expires": expires},
        )
