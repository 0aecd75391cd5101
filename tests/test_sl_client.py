"""Tests for the SL API client."""

import httpx
import pytest

from sl_mcp.sl_client import BASE_URL, SLAPIError, SLClient


def mock_transport(status_code=200, json=None, content=None, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if content is not None:
            return httpx.Response(status_code, content=content)
        return httpx.Response(status_code, json=json)

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_client_initialization():
    """Test client context manager."""
    async with SLClient() as client:
        assert client.client is not None
        assert client.base_url == BASE_URL


@pytest.mark.asyncio
async def test_client_requires_context_manager():
    client = SLClient()
    with pytest.raises(RuntimeError):
        await client.get_sites()


@pytest.mark.asyncio
async def test_get_sites_requests_sites_endpoint():
    seen = []
    payload = [{"id": 9001, "name": "T-Centralen"}]
    async with SLClient(transport=mock_transport(json=payload, seen=seen)) as client:
        assert await client.get_sites() == payload

    assert str(seen[0].url) == f"{BASE_URL}/sites"
    assert seen[0].method == "GET"
    assert seen[0].headers["accept"] == "application/json"


@pytest.mark.asyncio
async def test_get_departures_requests_site_endpoint():
    seen = []
    payload = {"departures": []}
    transport = mock_transport(json=payload, seen=seen)
    async with SLClient(base_url="https://example.test/v1/", transport=transport) as client:
        assert await client.get_departures(9001) == payload

    assert str(seen[0].url) == "https://example.test/v1/sites/9001/departures"


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [400, 404, 429, 500, 503])
async def test_non_success_status_raises(status_code):
    async with SLClient(transport=mock_transport(status_code, json={"message": "nope"})) as client:
        with pytest.raises(SLAPIError) as excinfo:
            await client.get_departures(1)

    assert excinfo.value.status_code == status_code
    assert str(excinfo.value) == f"SL departures request failed with {status_code}."


@pytest.mark.asyncio
async def test_network_error_raises():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with SLClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(SLAPIError, match="SL sites request failed"):
            await client.get_sites()


@pytest.mark.asyncio
async def test_invalid_json_raises():
    async with SLClient(transport=mock_transport(content=b"<html>")) as client:
        with pytest.raises(SLAPIError, match="not valid JSON"):
            await client.get_sites()


if __name__ == "__main__":
    pytest.main([__file__])
