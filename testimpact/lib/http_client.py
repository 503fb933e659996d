"""Thin async HTTP wrapper used by the backend client.

Owns one lazily created ``httpx.AsyncClient`` per base URL and logs every
request. Transport errors are re-raised unchanged so that the caller can
translate them into backend error kinds.
"""

from dataclasses import dataclass
from typing import Any

import httpx

from testimpact.lib.logging import get_logger

logger = get_logger(__name__)

CONNECT_TIMEOUT = 10.0
POOL_TIMEOUT = 10.0


@dataclass(frozen=True)
class TimeoutConfig:
    """Per-phase timeouts in seconds."""

    connect: float = CONNECT_TIMEOUT
    read: float = 30.0
    write: float = 30.0
    pool: float = POOL_TIMEOUT

    @classmethod
    def uniform(cls, seconds: float) -> "TimeoutConfig":
        """Apply one limit to reads and writes; connect and pool keep their defaults."""
        return cls(read=seconds, write=seconds)

    def to_httpx(self) -> httpx.Timeout:
        return httpx.Timeout(connect=self.connect, read=self.read, write=self.write, pool=self.pool)


class HTTPClient:
    """
    Async HTTP client bound to a single backend base URL.

    Args:
        base_url: Prefix for every request path
        timeout: Default timeouts for requests made through this client
        headers: Headers sent with every request
        transport: Optional transport (``httpx.MockTransport`` in tests)
    """

    def __init__(
        self,
        base_url: str,
        timeout: TimeoutConfig | None = None,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout or TimeoutConfig()
        self._headers = headers or {}
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout.to_httpx(),
                headers=self._headers,
                transport=self._transport,
            )
        return self._client

    async def request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> httpx.Response:
        """
        Send a request and return the raw response.

        Raises:
            httpx.TimeoutException: If the request times out
            httpx.HTTPError: For connection and protocol failures
        """
        client = self._ensure_client()
        kwargs: dict[str, Any] = {}
        if json is not None:
            kwargs["json"] = json
        if timeout is not None:
            kwargs["timeout"] = timeout.to_httpx()

        logger.debug("http_request", method=method, url=f"{self._base_url}{path}")
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.error("http_timeout", method=method, path=path, error=str(e))
            raise
        except httpx.HTTPError as e:
            logger.error("http_error", method=method, path=path, error=str(e))
            raise

        logger.debug("http_response", method=method, path=path, status_code=response.status_code)
        return response

    async def get(self, path: str, timeout: TimeoutConfig | None = None) -> httpx.Response:
        return await self.request("GET", path, timeout=timeout)

    async def post(
        self, path: str, json: dict[str, Any], timeout: TimeoutConfig | None = None
    ) -> httpx.Response:
        return await self.request("POST", path, json=json, timeout=timeout)

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "HTTPClient":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        await self.close()


__all__ = ["HTTPClient", "TimeoutConfig"]
