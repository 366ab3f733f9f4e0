"""Public facade of the aggregation core and its explicit wiring."""

from __future__ import annotations

import logging

from price_aggregator.core.config import AggregatorConfig
from price_aggregator.core.models import (
    AssetId,
    AssetType,
    AssetUpdateResult,
    BatchUpdateReport,
    PredictionTimeframe,
    PricePrediction,
    PriceRecord,
    PriceStatistics,
    ProviderName,
    SearchResult,
)
from price_aggregator.pricing.history import HistoryRecorder
from price_aggregator.pricing.orchestrator import PriceUpdateOrchestrator
from price_aggregator.pricing.prediction import LLMPriceEstimator, PredictionService
from price_aggregator.pricing.rate_limit import RateLimiterRegistry
from price_aggregator.pricing.resolver import PriceResolver
from price_aggregator.pricing.search import SearchAggregator
from price_aggregator.pricing.valuation import ValuationUpdater
from price_aggregator.providers import (
    AlphaVantageProvider,
    BinanceProvider,
    CarDepreciationProvider,
    CarValuationProvider,
    CoinGeckoProvider,
    CollectorCarProvider,
    FallbackCatalog,
    PriceProvider,
    WatchEstimateProvider,
    WatchMarketProvider,
    YahooFinanceProvider,
)
from price_aggregator.storage.store import SqliteStore

logger = logging.getLogger(__name__)


def build_providers(config: AggregatorConfig) -> dict[ProviderName, PriceProvider]:
    """Instantiate every provider from configuration, keyed by name."""
    p = config.providers
    providers: list[PriceProvider] = [
        CoinGeckoProvider(p.coingecko),
        BinanceProvider(p.binance),
        AlphaVantageProvider(p.alpha_vantage),
        YahooFinanceProvider(p.yahoo_finance),
        WatchMarketProvider(p.watch_market),
        WatchEstimateProvider(),
        CollectorCarProvider(),
        CarValuationProvider(p.car_valuation),
        CarDepreciationProvider(),
    ]
    return {provider.name: provider for provider in providers}


class PriceAggregationService:
    """Narrow API exposed to the rest of the application.

    Batch operations never raise for per-asset problems; callers inspect
    the returned report.
    """

    def __init__(
        self,
        *,
        resolver: PriceResolver,
        orchestrator: PriceUpdateOrchestrator,
        history: HistoryRecorder,
        search: SearchAggregator,
        prediction: PredictionService,
        config: AggregatorConfig,
    ) -> None:
        self._resolver = resolver
        self._orchestrator = orchestrator
        self._history = history
        self._search = search
        self._prediction = prediction
        self._config = config

    @property
    def orchestrator(self) -> PriceUpdateOrchestrator:
        return self._orchestrator

    def _window(self, days: int | None) -> int:
        return days if days is not None else self._config.pricing.default_history_days

    async def update_asset_price(self, asset_id: AssetId) -> AssetUpdateResult:
        return await self._orchestrator.update_one(asset_id)

    async def update_assets_prices(self, asset_ids: list[AssetId]) -> BatchUpdateReport:
        return await self._orchestrator.update_many(asset_ids)

    async def update_all_assets(self) -> BatchUpdateReport:
        return await self._orchestrator.update_all()

    async def search_asset(
        self, query: str, type_filter: AssetType | None = None
    ) -> list[SearchResult]:
        return await self._search.search(query, type_filter)

    async def get_price_history(
        self, asset_id: AssetId, days: int | None = None
    ) -> list[PriceRecord]:
        return await self._history.history(asset_id, self._window(days))

    async def get_price_statistics(
        self, asset_id: AssetId, days: int | None = None
    ) -> PriceStatistics | None:
        return await self._history.statistics(asset_id, self._window(days))

    async def prune_history(self, retention_days: int | None = None) -> int:
        return await self._history.prune(
            retention_days
            if retention_days is not None
            else self._config.pricing.history_retention_days
        )

    async def predict_price(
        self,
        asset_id: AssetId,
        timeframe: PredictionTimeframe = PredictionTimeframe.ONE_WEEK,
    ) -> PricePrediction | None:
        return await self._prediction.predict(asset_id, timeframe)

    async def get_active_predictions(
        self, asset_id: AssetId, timeframe: PredictionTimeframe | None = None
    ) -> list[PricePrediction]:
        return await self._prediction.active_predictions(asset_id, timeframe)

    @property
    def providers(self) -> dict[ProviderName, PriceProvider]:
        return self._resolver.providers

    def provider_status(self) -> dict[str, bool]:
        """Enabled flag per provider, in registration order."""
        return {name.value: provider.is_enabled() for name, provider in self.providers.items()}

    async def close(self) -> None:
        await self._resolver.close()


def build_service(
    config: AggregatorConfig,
    store: SqliteStore,
    providers: dict[ProviderName, PriceProvider] | None = None,
    llm: LLMPriceEstimator | None = None,
) -> PriceAggregationService:
    """Wire the core from configuration. ``store`` serves as both repositories."""
    providers = providers if providers is not None else build_providers(config)
    limiters = RateLimiterRegistry()

    history = HistoryRecorder(store)
    resolver = PriceResolver(providers, limiters)
    updater = ValuationUpdater(store, history)
    orchestrator = PriceUpdateOrchestrator(store, resolver, updater, history, config.pricing)
    search = SearchAggregator(providers.values(), FallbackCatalog(), limiters)
    prediction = PredictionService(
        store,
        history,
        llm if llm is not None else LLMPriceEstimator(config.prediction),
        predictions=store,
    )

    enabled = [name.value for name, p in providers.items() if p.is_enabled()]
    logger.info("Price aggregation service ready; enabled providers: %s", ", ".join(enabled))

    return PriceAggregationService(
        resolver=resolver,
        orchestrator=orchestrator,
        history=history,
        search=search,
        prediction=prediction,
        config=config,
    )
