"""SL Transport API client for fetching Stockholm public transport data."""

from typing import Any

import httpx

BASE_URL = "https://transport.integration.sl.se/v1"
USER_AGENT = "sl-mcp/0.1.0"


class SLAPIError(Exception):
    """The SL API could not be reached or answered with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SLClient:
    """Client for interacting with the SL Transport API."""

    def __init__(
        self,
        base_url: str = BASE_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.client: httpx.AsyncClient | None = None
        self._transport = transport

    async def __aenter__(self):
        """Async context manager entry."""
        self.client = httpx.AsyncClient(
            timeout=self.timeout,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self.client:
            await self.client.aclose()

    async def _get(self, path: str, what: str) -> Any:
        """GET a path and decode JSON, raising SLAPIError on any failure."""
        if not self.client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")

        try:
            response = await self.client.get(f"{self.base_url}{path}")
        except httpx.RequestError as e:
            raise SLAPIError(f"SL {what} request failed: {e}") from e

        if not response.is_success:
            raise SLAPIError(
                f"SL {what} request failed with {response.status_code}.",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise SLAPIError(f"SL {what} response was not valid JSON.") from e

    async def get_sites(self) -> Any:
        """Get the full SL site catalog.

        Returns:
            Decoded JSON, normally a list of site records.
        """
        return await self._get("/sites", "sites")

    async def get_departures(self, site_id: int) -> Any:
        """Get upcoming departures for a site.

        Args:
            site_id: SL site id (e.g., 9001 for T-Centralen)

        Returns:
            Decoded JSON, either a list of departures or an object wrapping one.
        """
        return await self._get(f"/sites/{site_id}/departures", "departures")
