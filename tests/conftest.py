"""Shared fixtures for Safelink tests."""

import httpx
import pytest

from safelink.integrations.fetcher import ListFetcher
from safelink.storage import KeyValueStore

CATALOG_URL = "https://lists.test/default_lists.json"


def make_transport(routes: dict, calls: list | None = None) -> httpx.MockTransport:
    """MockTransport serving *routes* (url -> payload).

    Payloads: dict/list → JSON 200, str → text 200, httpx.Response as-is,
    an exception instance is raised. Unknown URLs get a 404. The dict is
    read on every request, so tests may change it between calls.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if calls is not None:
            calls.append(url)
        route = routes.get(url)
        if route is None:
            return httpx.Response(404, text="not found")
        if isinstance(route, Exception):
            raise route
        if isinstance(route, httpx.Response):
            return route
        if isinstance(route, str):
            return httpx.Response(200, text=route)
        return httpx.Response(200, json=route)

    return httpx.MockTransport(handler)


@pytest.fixture()
def store(tmp_path):
    with KeyValueStore(tmp_path / "safelink.db") as s:
        yield s


@pytest.fixture()
def routes() -> dict:
    return {}


@pytest.fixture()
def calls() -> list:
    return []


@pytest.fixture()
async def fetcher(routes, calls):
    async with ListFetcher(transport=make_transport(routes, calls)) as f:
        yield f
