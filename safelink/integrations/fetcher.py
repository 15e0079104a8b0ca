"""Async HTTP fetcher for list documents and redirect probes."""

import json
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

_USER_AGENT = "safelink/0.1 (+https://github.com/jballmann/safelink-lists)"


class FetchError(Exception):
    """Raised when a URL cannot be fetched or returns an error status."""


class ListFetcher:
    """Thin wrapper around ``httpx.AsyncClient``.

    Usage::

        async with ListFetcher(timeout=30) as fetcher:
            body = await fetcher.fetch_json(url)
            response = await fetcher.fetch(url, follow_redirects=True)
    """

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": _USER_AGENT},
            transport=transport,
        )

    async def __aenter__(self) -> "ListFetcher":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch(self, url: str, *, follow_redirects: bool = True) -> httpx.Response:
        """GET *url* and return the response whatever its status.

        ``response.url`` is the final URL and ``response.history`` is
        non-empty when redirects were followed.

        Raises:
            FetchError: On transport failure (DNS, connect, timeout, ...).
        """
        try:
            return await self._client.get(url, follow_redirects=follow_redirects)
        except httpx.HTTPError as exc:
            raise FetchError(f"Fetching {url} failed: {exc}") from exc

    async def fetch_text(self, url: str) -> str:
        """GET *url* and return the body as text.

        Raises:
            FetchError: On transport failure or non-2xx status.
        """
        response = await self.fetch(url)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise FetchError(f"Fetching {url} failed: HTTP {response.status_code}") from exc
        logger.debug("Fetched %s (%d bytes)", url, len(response.content))
        return response.text

    async def fetch_json(self, url: str) -> Any:
        """GET *url* and decode the body as JSON.

        Raises:
            FetchError: On transport failure or non-2xx status.
            json.JSONDecodeError: If the body is not JSON.
        """
        return json.loads(await self.fetch_text(url))


def was_redirected(response: httpx.Response) -> bool:
    """True if following the request involved at least one redirect."""
    return bool(response.history)
