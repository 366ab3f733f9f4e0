"""Symbol search fanned out across providers, with an offline catalog fallback."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from price_aggregator.core.models import AssetType, SearchResult
from price_aggregator.pricing.rate_limit import RateLimiterRegistry
from price_aggregator.providers.base import PriceProvider
from price_aggregator.providers.catalog import FallbackCatalog

logger = logging.getLogger(__name__)

# A STOCK filter also covers instruments quoted by the same equity providers.
_FILTER_EXPANSION: dict[AssetType, frozenset[AssetType]] = {
    AssetType.STOCK: frozenset(
        {AssetType.STOCK, AssetType.ETF, AssetType.BOND, AssetType.FUND}
    ),
}


def _types_for(type_filter: AssetType | None) -> frozenset[AssetType] | None:
    if type_filter is None:
        return None
    return _FILTER_EXPANSION.get(type_filter, frozenset({type_filter}))


class SearchAggregator:
    """Queries every enabled provider matching the type filter.

    Results keep their originating provider and are not deduplicated. When
    no provider returns anything, the embedded catalog answers instead.
    """

    def __init__(
        self,
        providers: Iterable[PriceProvider],
        catalog: FallbackCatalog | None = None,
        limiters: RateLimiterRegistry | None = None,
    ) -> None:
        self._providers = list(providers)
        self._catalog = catalog or FallbackCatalog()
        self._limiters = limiters or RateLimiterRegistry()

    def providers_for(self, type_filter: AssetType | None = None) -> list[PriceProvider]:
        wanted = _types_for(type_filter)
        return [
            p
            for p in self._providers
            if p.is_enabled() and (wanted is None or p.asset_types & wanted)
        ]

    async def search(
        self, query: str, type_filter: AssetType | None = None
    ) -> list[SearchResult]:
        query = query.strip()
        if not query:
            return []

        results: list[SearchResult] = []
        for provider in self.providers_for(type_filter):
            if provider.min_interval > 0:
                await self._limiters.get(provider.name.value, provider.min_interval).wait()
            try:
                found = await provider.search(query)
            except Exception as e:
                logger.error("Search on %s failed for %r: %s", provider.name, query, e)
                continue
            logger.debug("Search on %s for %r: %d results", provider.name, query, len(found))
            results.extend(found)

        if results:
            return results

        logger.info("No provider results for %r, using offline catalog", query)
        return self._catalog.search(query, type_filter)
