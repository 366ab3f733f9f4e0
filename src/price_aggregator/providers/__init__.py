"""price_aggregator.providers — Third-party price sources and offline estimators."""

from price_aggregator.providers.alpha_vantage import AlphaVantageProvider
from price_aggregator.providers.base import BaseProvider, HttpProvider, PriceProvider, parse_price
from price_aggregator.providers.binance import BinanceProvider
from price_aggregator.providers.cars import (
    CarDepreciationProvider,
    CarValuationProvider,
    CollectorCarProvider,
)
from price_aggregator.providers.catalog import FallbackCatalog
from price_aggregator.providers.coingecko import CoinGeckoProvider
from price_aggregator.providers.http import ProviderHttpClient
from price_aggregator.providers.watches import WatchEstimateProvider, WatchMarketProvider
from price_aggregator.providers.yahoo import YahooFinanceProvider

__all__ = [
    "PriceProvider",
    "BaseProvider",
    "HttpProvider",
    "ProviderHttpClient",
    "parse_price",
    "CoinGeckoProvider",
    "BinanceProvider",
    "AlphaVantageProvider",
    "YahooFinanceProvider",
    "WatchMarketProvider",
    "WatchEstimateProvider",
    "CollectorCarProvider",
    "CarValuationProvider",
    "CarDepreciationProvider",
    "FallbackCatalog",
]
