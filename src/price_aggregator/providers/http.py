"""Rate-limited async HTTP client shared by the networked price providers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from aiolimiter import AsyncLimiter

from price_aggregator.core.exceptions import ProviderError, ProviderRateLimitError

logger = logging.getLogger(__name__)

_USER_AGENT = "Mozilla/5.0 (compatible; price-aggregator/0.1)"

# Retry configuration
_MAX_RETRIES_429 = 3
_DEFAULT_RETRY_AFTER = 12
_MAX_RETRIES_SERVER = 3
_MAX_RETRIES_CONNECTION = 2
_CONNECTION_RETRY_DELAY = 2.0


class ProviderHttpClient:
    """One `httpx.AsyncClient` per provider with a token-bucket burst limit.

    The per-provider minimum interval (e.g. Alpha Vantage's 12 s) is enforced
    by the resolver's rate limiter, not here; this class only smooths bursts.

    Use via `async with ProviderHttpClient(...) as http:` or call `close()`.
    """

    def __init__(
        self,
        provider: str,
        base_url: str,
        *,
        timeout: float = 10.0,
        requests_per_second: float = 5.0,
        headers: dict[str, str] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.provider = provider
        self._limiter = AsyncLimiter(max_rate=requests_per_second, time_period=1.0)
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"User-Agent": _USER_AGENT, **(headers or {})},
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
        )
        self._sleep = sleep

    async def __aenter__(self) -> ProviderHttpClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET `path` and decode the JSON body.

        Raises:
            ProviderRateLimitError: 429 responses after retry exhaustion.
            ProviderError: any other transport failure or a non-JSON body.
        """
        response = await self._request("GET", path, params=params)
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                f"{self.provider}: response is not valid JSON",
                context={
                    "provider": self.provider,
                    "url": str(response.request.url),
                    "status_code": response.status_code,
                },
            ) from e

    async def _request(
        self,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Execute an HTTP request with rate limiting and retry logic.

        Retry policy:
            - HTTP 429: Wait for Retry-After header value (or 12s default),
              then retry up to 3 times.
            - HTTP 500/502/503: Retry up to 3 times with exponential backoff.
            - Other HTTP errors: Raise immediately (no retry).
            - Connection errors: Retry up to 2 times with 2s delay.
        """
        for attempt in range(_MAX_RETRIES_429 + 1):
            try:
                await self._limiter.acquire()
                response = await self._client.request(method, path, **kwargs)
            except httpx.ConnectError as e:
                if attempt < _MAX_RETRIES_CONNECTION:
                    logger.warning(
                        "%s: connection error on %s, retrying in %.0fs (attempt %d/%d)",
                        self.provider, path, _CONNECTION_RETRY_DELAY,
                        attempt + 1, _MAX_RETRIES_CONNECTION,
                    )
                    await self._sleep(_CONNECTION_RETRY_DELAY)
                    continue
                raise ProviderError(
                    f"{self.provider}: connection failed after retries",
                    context={"provider": self.provider, "url": path, "status_code": None},
                ) from e
            except httpx.RequestError as e:
                raise ProviderError(
                    f"{self.provider}: request failed: {e}",
                    context={"provider": self.provider, "url": path, "status_code": None},
                ) from e

            if response.status_code == 200:
                return response

            if response.status_code == 429:
                retry_after = _parse_retry_after(response)
                if attempt < _MAX_RETRIES_429:
                    logger.warning(
                        "%s: rate limited (429) on %s, waiting %ds (attempt %d/%d)",
                        self.provider, path, retry_after, attempt + 1, _MAX_RETRIES_429,
                    )
                    await self._sleep(retry_after)
                    continue
                raise ProviderRateLimitError(
                    f"{self.provider}: rate limit exceeded after {_MAX_RETRIES_429} retries",
                    context={
                        "provider": self.provider,
                        "url": path,
                        "status_code": 429,
                        "retry_after": retry_after,
                    },
                )

            if response.status_code in (500, 502, 503):
                if attempt < _MAX_RETRIES_SERVER:
                    delay = 2**attempt
                    logger.warning(
                        "%s: server error %d on %s, retrying in %ds (attempt %d/%d)",
                        self.provider, response.status_code, path, delay,
                        attempt + 1, _MAX_RETRIES_SERVER,
                    )
                    await self._sleep(delay)
                    continue
                raise ProviderError(
                    f"{self.provider}: server error {response.status_code} after retries",
                    context={
                        "provider": self.provider,
                        "url": path,
                        "status_code": response.status_code,
                    },
                )

            raise ProviderError(
                f"{self.provider}: HTTP {response.status_code}",
                context={
                    "provider": self.provider,
                    "url": path,
                    "status_code": response.status_code,
                },
            )

        raise ProviderError(
            f"{self.provider}: request failed after all retries",
            context={"provider": self.provider, "url": path, "status_code": None},
        )


def _parse_retry_after(response: httpx.Response) -> int:
    raw = response.headers.get("Retry-After")
    if raw is None:
        return _DEFAULT_RETRY_AFTER
    try:
        return max(0, int(raw))
    except ValueError:
        return _DEFAULT_RETRY_AFTER
