"""HTTP client for REST endpoints under test."""

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import httpx

from smoker.clients.base import BaseServiceClient
from smoker.core.errors import ServiceClientError, ValidationError, ERR_HTTP


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class RestClient(BaseServiceClient):
    """Thin async wrapper around httpx bound to a base URL.

    Configuration:
        baseUrl: (required) Base URL requests are resolved against; baseURL
            is accepted as well
        timeout: Request timeout in seconds (default 30)
        headers: Headers sent with every request

    Responses are returned as-is whatever their status code; only transport
    failures raise.
    """

    def __init__(self, client_id: str = "RestClient", config=None,
                 transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        super().__init__(client_id, config)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        return self.get_config("baseUrl") or self.get_config("baseURL") or ""

    async def _initialize_client(self) -> None:
        base_url = self.base_url
        if not base_url:
            raise ValidationError(
                "REST client requires 'baseUrl' in its configuration",
                details={"client": self.name, "field": "baseUrl"},
            )

        parsed = urlparse(base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationError(
                f"Invalid baseUrl: {base_url}",
                details={"client": self.name, "field": "baseUrl"},
            )

        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=float(self.get_config("timeout", DEFAULT_TIMEOUT_SECONDS)),
            headers=self.default_headers(),
            transport=self._transport,
        )
        logger.debug(f"REST client {self.name} bound to {base_url}")

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request relative to the base URL.

        Args:
            method: HTTP method
            url: Path or absolute URL
            **kwargs: Passed to httpx (json, params, headers, content, ...)

        Raises:
            ServiceClientError: When the request cannot be completed
        """
        self.ensure_initialized()
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise ServiceClientError(
                f"{method} {url} timed out: {e}",
                code=ERR_HTTP,
                domain="http",
                details={"client": self.name, "method": method, "url": url},
            ) from e
        except httpx.HTTPError as e:
            raise ServiceClientError(
                f"{method} {url} failed: {e}",
                code=ERR_HTTP,
                domain="http",
                details={"client": self.name, "method": method, "url": url},
            ) from e

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, json: Any = None, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, json=json, **kwargs)

    async def put(self, url: str, json: Any = None, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, json=json, **kwargs)

    async def patch(self, url: str, json: Any = None, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", url, json=json, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    def default_headers(self) -> Dict[str, str]:
        """Headers configured for every request."""
        return dict(self.get_config("headers") or {})

    async def cleanup_client(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
