"""Tests for price_aggregator.providers.http (ProviderHttpClient)."""

from __future__ import annotations

import httpx
import pytest
import respx

from price_aggregator.core.exceptions import ProviderError, ProviderRateLimitError
from price_aggregator.providers.http import ProviderHttpClient

BASE = "https://api.example.test"


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
async def client(sleeps):
    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    async with ProviderHttpClient(
        "example", BASE, requests_per_second=100, sleep=fake_sleep
    ) as c:
        yield c


class TestGetJson:
    @respx.mock
    async def test_success(self, client):
        route = respx.get(f"{BASE}/quote").mock(
            return_value=httpx.Response(200, json={"price": "1.5"})
        )
        data = await client.get_json("/quote", params={"symbol": "X"})
        assert data == {"price": "1.5"}
        assert route.calls.last.request.url.params["symbol"] == "X"
        assert "price-aggregator" in route.calls.last.request.headers["User-Agent"]

    @respx.mock
    async def test_invalid_json(self, client):
        respx.get(f"{BASE}/quote").mock(return_value=httpx.Response(200, text="<html>"))
        with pytest.raises(ProviderError, match="not valid JSON"):
            await client.get_json("/quote")

    @respx.mock
    async def test_client_error_not_retried(self, client, sleeps):
        route = respx.get(f"{BASE}/quote").mock(return_value=httpx.Response(404))
        with pytest.raises(ProviderError, match="HTTP 404") as exc_info:
            await client.get_json("/quote")
        assert exc_info.value.context["status_code"] == 404
        assert route.call_count == 1
        assert sleeps == []


class TestRetryPolicy:
    @respx.mock
    async def test_429_uses_retry_after(self, client, sleeps):
        respx.get(f"{BASE}/quote").mock(
            side_effect=[
                httpx.Response(429, headers={"Retry-After": "3"}),
                httpx.Response(200, json={"ok": True}),
            ]
        )
        assert await client.get_json("/quote") == {"ok": True}
        assert sleeps == [3]

    @respx.mock
    async def test_429_default_wait(self, client, sleeps):
        respx.get(f"{BASE}/quote").mock(
            side_effect=[httpx.Response(429), httpx.Response(200, json={})]
        )
        await client.get_json("/quote")
        assert sleeps == [12]

    @respx.mock
    async def test_429_exhausted(self, client, sleeps):
        route = respx.get(f"{BASE}/quote").mock(return_value=httpx.Response(429))
        with pytest.raises(ProviderRateLimitError):
            await client.get_json("/quote")
        assert route.call_count == 4
        assert len(sleeps) == 3

    @respx.mock
    async def test_server_error_backoff(self, client, sleeps):
        respx.get(f"{BASE}/quote").mock(
            side_effect=[
                httpx.Response(503),
                httpx.Response(502),
                httpx.Response(200, json={"ok": 1}),
            ]
        )
        assert await client.get_json("/quote") == {"ok": 1}
        assert sleeps == [1, 2]

    @respx.mock
    async def test_server_error_exhausted(self, client):
        respx.get(f"{BASE}/quote").mock(return_value=httpx.Response(500))
        with pytest.raises(ProviderError, match="server error 500"):
            await client.get_json("/quote")

    @respx.mock
    async def test_connect_error_retried(self, client, sleeps):
        respx.get(f"{BASE}/quote").mock(
            side_effect=[httpx.ConnectError("refused"), httpx.Response(200, json={})]
        )
        assert await client.get_json("/quote") == {}
        assert sleeps == [2.0]

    @respx.mock
    async def test_connect_error_exhausted(self, client, sleeps):
        respx.get(f"{BASE}/quote").mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(ProviderError, match="connection failed"):
            await client.get_json("/quote")
        assert sleeps == [2.0, 2.0]

    @respx.mock
    async def test_timeout_not_retried(self, client, sleeps):
        respx.get(f"{BASE}/quote").mock(side_effect=httpx.ReadTimeout("slow"))
        with pytest.raises(ProviderError, match="request failed"):
            await client.get_json("/quote")
        assert sleeps == []
