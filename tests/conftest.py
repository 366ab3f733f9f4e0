"""Shared pytest fixtures for price-aggregator."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from price_aggregator.core.config import (
    AggregatorConfig,
    PricingConfig,
    StorageConfig,
)
from price_aggregator.core.models import (
    Asset,
    AssetType,
    PriceQuote,
    ProviderName,
    SearchResult,
)
from price_aggregator.providers.base import BaseProvider
from price_aggregator.storage.store import SqliteStore


class FakeProvider(BaseProvider):
    """Scripted provider: fixed price, no data, or an exception."""

    def __init__(
        self,
        name: ProviderName,
        asset_types: set[AssetType],
        *,
        price: float | None = None,
        currency: str = "EUR",
        enabled: bool = True,
        error: Exception | None = None,
        min_interval: float = 0.0,
        search_results: list[SearchResult] | None = None,
    ) -> None:
        self.name = name
        self.asset_types = frozenset(asset_types)
        self.price = price
        self.currency = currency
        self.enabled = enabled
        self.error = error
        self._min_interval = min_interval
        self.search_results = search_results or []
        self.calls: list[str] = []
        self.searches: list[str] = []
        self.closed = False

    @property
    def min_interval(self) -> float:
        return self._min_interval

    def is_enabled(self) -> bool:
        return self.enabled

    async def fetch_price(self, asset: Asset) -> PriceQuote | None:
        self.calls.append(asset.id)
        if self.error is not None:
            raise self.error
        if self.price is None:
            return None
        return PriceQuote(price=self.price, currency=self.currency, source=self.name.value)

    async def search(self, query: str) -> list[SearchResult]:
        self.searches.append(query)
        if self.error is not None:
            raise self.error
        return list(self.search_results)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_provider():
    """Factory for FakeProvider instances."""

    def _make(name: ProviderName, asset_types: set[AssetType], **kwargs) -> FakeProvider:
        return FakeProvider(name, asset_types, **kwargs)

    return _make


@pytest.fixture
def make_asset():
    """Factory for Asset with overridable defaults."""

    def _make(**overrides) -> Asset:
        defaults = dict(
            id="asset-btc",
            name="Bitcoin",
            type=AssetType.CRYPTO,
            symbol="BTC",
            quantity=2.0,
            purchase_price=30000.0,
            currency="EUR",
        )
        defaults.update(overrides)
        return Asset(**defaults)

    return _make


@pytest.fixture
def btc_asset(make_asset) -> Asset:
    return make_asset()


@pytest.fixture
def watch_asset(make_asset) -> Asset:
    return make_asset(
        id="asset-watch",
        name="Submariner",
        type=AssetType.LUXURY_WATCH,
        symbol=None,
        brand="Rolex",
        model="Submariner",
        year=2010,
        condition="excellent",
        quantity=1.0,
        purchase_price=7000.0,
    )


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2025, 6, 15, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def memory_config() -> AggregatorConfig:
    """Config with in-memory storage and scheduled updates off."""
    return AggregatorConfig(
        storage=StorageConfig(sqlite_path=":memory:"),
        pricing=PricingConfig(price_updates_enabled=False),
    )


@pytest.fixture
async def store():
    """An initialized in-memory SqliteStore."""
    s = SqliteStore(StorageConfig(sqlite_path=":memory:"))
    await s.initialize()
    yield s
    await s.close()
