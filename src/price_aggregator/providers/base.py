"""Price provider protocol and shared base classes.

Architecture
------------
Every source of prices, networked or purely computed, satisfies the same
``PriceProvider`` protocol so the resolver can walk a fallback chain
without knowing which kind of source it is talking to:

    Asset → PriceResolver → [PriceProvider, ...] → PriceQuote | None

- A provider answers ``None`` for "no data": unknown symbol, an error
  payload inside a 200 response, or a non-positive price.
- Transport failures surface as ``ProviderError`` from the shared HTTP
  layer. The resolver treats both outcomes as "try the next provider".
- A disabled provider (missing credential, ``enabled: false``) is skipped
  by the resolver without any I/O.
"""

from __future__ import annotations

import math
from typing import Any, ClassVar, Protocol, runtime_checkable

from price_aggregator.core.config import ProviderConfig
from price_aggregator.core.models import Asset, AssetType, PriceQuote, ProviderName, SearchResult
from price_aggregator.providers.http import ProviderHttpClient


@runtime_checkable
class PriceProvider(Protocol):
    """Consumer-facing interface for a single price source."""

    name: ProviderName
    asset_types: frozenset[AssetType]

    @property
    def min_interval(self) -> float:
        """Seconds that must separate two calls, 0 when unthrottled."""
        ...

    def is_enabled(self) -> bool: ...

    async def fetch_price(self, asset: Asset) -> PriceQuote | None: ...

    async def search(self, query: str) -> list[SearchResult]: ...

    async def close(self) -> None: ...


class BaseProvider:
    """Defaults shared by all providers: always enabled, no search, no I/O."""

    name: ClassVar[ProviderName]
    asset_types: ClassVar[frozenset[AssetType]] = frozenset()

    @property
    def min_interval(self) -> float:
        return 0.0

    def is_enabled(self) -> bool:
        return True

    async def fetch_price(self, asset: Asset) -> PriceQuote | None:
        raise NotImplementedError

    async def search(self, query: str) -> list[SearchResult]:
        return []

    async def close(self) -> None:
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(enabled={self.is_enabled()})"


class HttpProvider(BaseProvider):
    """Base for providers backed by a remote API.

    Parameters
    ----------
    config : ProviderConfig
        Credential, endpoint override and throttling for this provider.
    http : ProviderHttpClient | None
        Injected client (tests); built from ``config`` when omitted.
    """

    default_base_url: ClassVar[str]
    requires_api_key: ClassVar[bool] = False

    def __init__(
        self,
        config: ProviderConfig | None = None,
        http: ProviderHttpClient | None = None,
    ) -> None:
        self.config = config or ProviderConfig()
        self._http = http

    @property
    def http(self) -> ProviderHttpClient:
        if self._http is None:
            self._http = ProviderHttpClient(
                self.name.value,
                self.config.base_url or self.default_base_url,
                timeout=self.config.timeout,
                requests_per_second=self.config.requests_per_second,
                headers=self._default_headers(),
            )
        return self._http

    @property
    def min_interval(self) -> float:
        return self.config.min_interval_seconds

    @property
    def api_key(self) -> str | None:
        return self.config.api_key if self.config.has_credential else None

    def is_enabled(self) -> bool:
        if not self.config.enabled:
            return False
        if self.requires_api_key:
            return self.config.has_credential
        return True

    def _default_headers(self) -> dict[str, str]:
        return {}

    async def close(self) -> None:
        if self._http is not None:
            await self._http.close()
            self._http = None


def parse_price(value: Any) -> float | None:
    """Coerce a provider price field to a positive finite float, else None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price <= 0:
        return None
    return price
