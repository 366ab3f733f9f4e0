"""Integration test fixtures — real SQLite files, no network."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from price_aggregator.core.config import (
    AggregatorConfig,
    APIConfig,
    PricingConfig,
    StorageConfig,
)
from price_aggregator.core.models import Asset, AssetType, PriceRecord
from price_aggregator.storage.store import create_store

SEEDED_ASSETS = [
    Asset(
        id="btc", name="Bitcoin", type=AssetType.CRYPTO, symbol="BTC",
        quantity=2, purchase_price=30000, currency="EUR",
    ),
    Asset(id="nosym", name="Mystery fund", type=AssetType.STOCK, quantity=1, purchase_price=10),
    Asset(
        id="aapl", name="Apple", type=AssetType.STOCK, symbol="AAPL",
        quantity=10, purchase_price=150, currency="USD",
    ),
    Asset(id="flat", name="Flat", type=AssetType.REAL_ESTATE, quantity=1, purchase_price=250000),
]


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "integration.db")


@pytest.fixture
async def seeded_db(db_path: str) -> str:
    """A database file with four assets and a few days of BTC history."""
    store = await create_store(StorageConfig(sqlite_path=db_path))
    try:
        for asset in SEEDED_ASSETS:
            await store.save_asset(asset)
        now = datetime.now(UTC)
        for days_ago, price in ((3, 40000.0), (2, 44000.0), (1, 48000.0)):
            await store.append_price(
                PriceRecord(
                    asset_id="btc", price=price, source="coingecko",
                    recorded_at=now - timedelta(days=days_ago),
                )
            )
    finally:
        await store.close()
    return db_path


@pytest.fixture
def integration_config(seeded_db: str) -> AggregatorConfig:
    """Seeded storage, scheduled updates off, no API key."""
    return AggregatorConfig(
        storage=StorageConfig(sqlite_path=seeded_db),
        pricing=PricingConfig(price_updates_enabled=False),
        api=APIConfig(),
    )
