"""Unit tests for the REST client."""

import json

import httpx
import pytest

from smoker.clients.rest import RestClient
from smoker.core.errors import ClientNotInitializedError, ServiceClientError, ValidationError


def recording_transport(requests, status_code=200, payload=None):
    """httpx transport that records requests and answers with JSON."""
    def handler(request):
        requests.append(request)
        return httpx.Response(status_code, json=payload if payload is not None else {"ok": True})
    return httpx.MockTransport(handler)


class TestRestClient:
    """Test cases for RestClient."""

    @pytest.mark.asyncio
    async def test_requires_base_url(self):
        """Test that init fails without a base URL."""
        with pytest.raises(ValidationError, match="requires 'baseUrl'"):
            await RestClient().init()

    @pytest.mark.asyncio
    async def test_invalid_base_url(self):
        """Test that malformed base URLs are rejected."""
        with pytest.raises(ValidationError, match="Invalid baseUrl"):
            await RestClient(config={"baseUrl": "not a url"}).init()

    @pytest.mark.asyncio
    async def test_accepts_base_url_alias(self):
        """Test that baseURL is accepted as well."""
        client = RestClient(config={"baseURL": "https://api.example.com"})

        await client.init()

        assert client.base_url == "https://api.example.com"
        await client.destroy()

    @pytest.mark.asyncio
    async def test_request_before_init(self):
        """Test that requests require init."""
        with pytest.raises(ClientNotInitializedError):
            await RestClient(config={"baseUrl": "https://api.example.com"}).get("/health")

    @pytest.mark.asyncio
    async def test_get_with_default_headers(self):
        """Test that requests go to the base URL with configured headers."""
        requests = []
        client = RestClient(
            config={"baseUrl": "https://api.example.com", "headers": {"X-Env": "smoke"}},
            transport=recording_transport(requests, payload={"status": "up"}),
        )
        await client.init()

        response = await client.get("/health", params={"deep": "1"})

        assert response.status_code == 200
        assert response.json() == {"status": "up"}
        assert str(requests[0].url) == "https://api.example.com/health?deep=1"
        assert requests[0].headers["X-Env"] == "smoke"
        await client.destroy()

    @pytest.mark.asyncio
    async def test_post_json(self):
        """Test sending a JSON body."""
        requests = []
        client = RestClient(
            config={"baseUrl": "https://api.example.com"},
            transport=recording_transport(requests, status_code=201),
        )
        await client.init()

        response = await client.post("/orders", json={"id": 42})

        assert response.status_code == 201
        assert requests[0].method == "POST"
        assert json.loads(requests[0].content) == {"id": 42}
        await client.destroy()

    @pytest.mark.asyncio
    async def test_error_status_returned(self):
        """Test that error statuses are returned rather than raised."""
        client = RestClient(
            config={"baseUrl": "https://api.example.com"},
            transport=recording_transport([], status_code=404),
        )
        await client.init()

        assert (await client.delete("/orders/1")).status_code == 404
        await client.destroy()

    @pytest.mark.asyncio
    async def test_transport_error_wrapped(self):
        """Test that connection failures become ServiceClientError."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = RestClient(
            config={"baseUrl": "https://api.example.com"},
            transport=httpx.MockTransport(handler),
        )
        await client.init()

        with pytest.raises(ServiceClientError) as exc_info:
            await client.put("/orders/1", json={})

        assert "PUT /orders/1 failed" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        await client.destroy()

    @pytest.mark.asyncio
    async def test_destroy_closes_client(self):
        """Test that destroy closes the underlying httpx client."""
        client = RestClient(config={"baseUrl": "https://api.example.com"})
        await client.init()
        http_client = client._client

        await client.destroy()

        assert http_client.is_closed
        assert client._client is None
