"""price_aggregator.storage — Asset repository and price history persistence."""

from price_aggregator.storage.store import (
    AssetRepository,
    PredictionStore,
    PriceHistoryStore,
    SqliteStore,
    create_store,
)

__all__ = [
    "AssetRepository",
    "PredictionStore",
    "PriceHistoryStore",
    "SqliteStore",
    "create_store",
]
