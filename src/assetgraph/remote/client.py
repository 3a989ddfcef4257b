"""HTTP fetcher for remote sources, with retry on transient failures."""

from __future__ import annotations

import logging

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from assetgraph.errors.exceptions import FetchFailedError

logger = logging.getLogger(__name__)

_USER_AGENT = "assetgraph"


class _TransientStatusError(Exception):
    """A 5xx response; retried like a transport error."""

    def __init__(self, url: str, status: int) -> None:
        super().__init__(f"HTTP {status} for {url}")
        self.url = url
        self.status = status


# Connection resets, DNS failures, read timeouts, 5xx
_TRANSIENT_EXCEPTIONS = (httpx.TransportError, _TransientStatusError)


class AsyncFetcher:
    """Fetches remote bytes over httpx.

    ``fetch`` is used by leaf tasks on the event loop; ``fetch_sync`` by the
    graph builder, which resolves documents synchronously. 4xx responses
    fail immediately. Transport errors and 5xx responses are retried with
    exponential backoff, then surface as ``FetchFailedError``.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        retries: int = 3,
        backoff: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
        sync_transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {"User-Agent": _USER_AGENT}
        self._client = httpx.AsyncClient(
            timeout=timeout, follow_redirects=True, headers=headers, transport=transport
        )
        self._sync_client = httpx.Client(
            timeout=timeout, follow_redirects=True, headers=headers, transport=sync_transport
        )
        policy = retry(
            retry=retry_if_exception_type(_TRANSIENT_EXCEPTIONS),
            wait=wait_exponential(multiplier=backoff, min=backoff, max=60),
            stop=stop_after_attempt(max(1, retries)),
            reraise=True,
        )
        self._get_async = policy(self._get_once_async)
        self._get_sync = policy(self._get_once_sync)

    async def fetch(self, url: str) -> bytes:
        try:
            response = await self._get_async(url)
        except _TransientStatusError as e:
            raise FetchFailedError(str(e), source=url, http_status=e.status) from e
        except httpx.HTTPError as e:
            raise FetchFailedError(f"Fetch failed for {url}: {e}", source=url) from e
        return _check(url, response)

    def fetch_sync(self, url: str) -> bytes:
        try:
            response = self._get_sync(url)
        except _TransientStatusError as e:
            raise FetchFailedError(str(e), source=url, http_status=e.status) from e
        except httpx.HTTPError as e:
            raise FetchFailedError(f"Fetch failed for {url}: {e}", source=url) from e
        return _check(url, response)

    async def aclose(self) -> None:
        await self._client.aclose()
        self._sync_client.close()

    def close(self) -> None:
        self._sync_client.close()

    async def _get_once_async(self, url: str) -> httpx.Response:
        response = await self._client.get(url)
        if response.status_code >= 500:
            logger.warning("Transient HTTP %d for %s", response.status_code, url)
            raise _TransientStatusError(url, response.status_code)
        return response

    def _get_once_sync(self, url: str) -> httpx.Response:
        response = self._sync_client.get(url)
        if response.status_code >= 500:
            logger.warning("Transient HTTP %d for %s", response.status_code, url)
            raise _TransientStatusError(url, response.status_code)
        return response


def _check(url: str, response: httpx.Response) -> bytes:
    if response.status_code >= 400:
        raise FetchFailedError(
            f"HTTP {response.status_code} for {url}",
            source=url,
            http_status=response.status_code,
        )
    return response.content
