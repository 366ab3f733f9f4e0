"""price_aggregator.core — Foundation types, config, and exceptions."""

from price_aggregator.core.config import (
    AggregatorConfig,
    APIConfig,
    PredictionConfig,
    PricingConfig,
    ProviderConfig,
    ProvidersConfig,
    StorageConfig,
    load_config,
)
from price_aggregator.core.exceptions import (
    AssetNotFoundError,
    ConfigError,
    MissingSymbolError,
    PredictionError,
    PriceAggregatorError,
    ProviderError,
    ProviderRateLimitError,
    ResolutionError,
    StorageError,
)
from price_aggregator.core.models import (
    COLLECTIBLE_TYPES,
    SYMBOL_TYPES,
    TRACKABLE_TYPES,
    Asset,
    AssetId,
    AssetType,
    AssetUpdateResult,
    BatchUpdateReport,
    PredictionTimeframe,
    PricePrediction,
    PriceQuote,
    PriceRecord,
    PriceStatistics,
    ProviderName,
    SearchResult,
    Symbol,
    ValuationUpdate,
)

__all__ = [
    # Type aliases
    "AssetId",
    "Symbol",
    # Enums and type sets
    "AssetType",
    "ProviderName",
    "PredictionTimeframe",
    "TRACKABLE_TYPES",
    "COLLECTIBLE_TYPES",
    "SYMBOL_TYPES",
    # Asset models
    "Asset",
    "ValuationUpdate",
    # Price models
    "PriceQuote",
    "PriceRecord",
    "PriceStatistics",
    # Batch models
    "AssetUpdateResult",
    "BatchUpdateReport",
    # Search / prediction
    "SearchResult",
    "PricePrediction",
    # Config
    "AggregatorConfig",
    "ProvidersConfig",
    "ProviderConfig",
    "PricingConfig",
    "StorageConfig",
    "PredictionConfig",
    "APIConfig",
    "load_config",
    # Exceptions
    "PriceAggregatorError",
    "ConfigError",
    "AssetNotFoundError",
    "MissingSymbolError",
    "ProviderError",
    "ProviderRateLimitError",
    "ResolutionError",
    "StorageError",
    "PredictionError",
]
