"""Shared fixtures: ASGI client, scripted provider HTTP, token cache reset."""

import time
from unittest.mock import MagicMock

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from storefront.inventory.provider import InventoryProvider, TokenCache, token_cache
from storefront.inventory.query import QueryCompiler
from storefront.main import app

PROVIDER_URL = "https://provider.test/api/diamonds"


def auth_reply(token: str = "tok-1", expires_in: float = 3600) -> tuple[int, dict]:
    expires_ms = int((time.time() + expires_in) * 1000)
    return (
        200,
        {
            "data": {
                "authenticate": {
                    "username_and_password": {"token": token, "expires": expires_ms}
                }
            }
        },
    )


def listing_reply(items: list, total: int | None = None) -> tuple[int, dict]:
    total = len(items) if total is None else total
    return 200, {"data": {"diamonds_by_query": {"items": items, "total_count": total}}}


@pytest.fixture(autouse=True)
def clear_token_cache():
    token_cache.clear()
    yield
    token_cache.clear()


@pytest.fixture
def scripted_http():
    """Factory for a MagicMock http client whose post() replays canned replies.

    Each reply is an exception (raised), or a (status, body) pair where a dict
    body is sent as JSON and a str body as text. Every call's kwargs are
    recorded on ``http.calls``.
    """

    def _make(*replies):
        queue = list(replies)
        calls: list[dict] = []

        async def mock_post(url, **kwargs):
            calls.append({"url": url, **kwargs})
            reply = queue.pop(0)
            if isinstance(reply, Exception):
                raise reply
            status, body = reply
            request = httpx.Request("POST", url)
            if isinstance(body, str):
                return httpx.Response(status, text=body, request=request)
            return httpx.Response(status, json=body, request=request)

        http = MagicMock()
        http.post = mock_post
        http.calls = calls
        http.pending = queue
        return http

    return _make


@pytest.fixture
def make_provider(scripted_http):
    """Provider with test credentials and its own token cache."""

    def _make(*replies, cache=None, username="user", password="secret"):
        http = scripted_http(*replies)
        provider = InventoryProvider(
            http,
            api_url=PROVIDER_URL,
            username=username,
            password=password,
            timeout=5.0,
            cache=cache if cache is not None else TokenCache(),
        )
        return provider, http

    return _make


@pytest.fixture
def make_compiler(make_provider):
    """QueryCompiler whose first scripted reply is a successful authentication."""

    def _make(*replies):
        provider, http = make_provider(auth_reply(), *replies)
        return QueryCompiler(provider), http

    return _make


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
