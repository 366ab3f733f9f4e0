"""Price resolution: walks an asset type's provider chain until one answers.

The fallback order per asset class lives in ``provider_chain`` and nowhere
else. A provider that is disabled is skipped without I/O; one that raises
or returns ``None`` hands over to the next entry in the chain.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import assert_never

from price_aggregator.core.exceptions import ResolutionError
from price_aggregator.core.models import Asset, AssetType, PriceQuote, ProviderName
from price_aggregator.pricing.rate_limit import RateLimiterRegistry
from price_aggregator.providers.base import PriceProvider

logger = logging.getLogger(__name__)

NO_PRICE_AVAILABLE = "No price available"


def provider_chain(asset_type: AssetType) -> tuple[ProviderName, ...]:
    """Ordered providers to try for an asset type; empty when untracked."""
    match asset_type:
        case AssetType.CRYPTO:
            return (ProviderName.COINGECKO, ProviderName.BINANCE)
        case AssetType.STOCK | AssetType.ETF | AssetType.BOND | AssetType.FUND:
            return (ProviderName.ALPHA_VANTAGE, ProviderName.YAHOO_FINANCE)
        case AssetType.COMMODITY:
            return (ProviderName.YAHOO_FINANCE,)
        case AssetType.LUXURY_WATCH:
            return (ProviderName.WATCH_MARKET, ProviderName.WATCH_ESTIMATE)
        case AssetType.COLLECTOR_CAR:
            return (
                ProviderName.COLLECTOR_CAR,
                ProviderName.CAR_VALUATION,
                ProviderName.CAR_DEPRECIATION,
            )
        case (
            AssetType.SCPI
            | AssetType.REAL_ESTATE
            | AssetType.CASH
            | AssetType.ARTWORK
            | AssetType.WINE
            | AssetType.JEWELRY
            | AssetType.COLLECTIBLE
            | AssetType.OTHER
        ):
            return ()
        case _:
            assert_never(asset_type)


class PriceResolver:
    """Resolves a single authoritative quote for an asset.

    Parameters
    ----------
    providers : Mapping[ProviderName, PriceProvider]
        Available providers. A chain entry with no registered provider is
        treated as disabled.
    limiters : RateLimiterRegistry
        Shared throttles; consulted before every call to a provider whose
        ``min_interval`` is positive.
    """

    def __init__(
        self,
        providers: Mapping[ProviderName, PriceProvider],
        limiters: RateLimiterRegistry | None = None,
    ) -> None:
        self._providers = dict(providers)
        self._limiters = limiters or RateLimiterRegistry()

    @property
    def providers(self) -> dict[ProviderName, PriceProvider]:
        return dict(self._providers)

    def chain_for(self, asset: Asset) -> list[PriceProvider]:
        """Registered, enabled providers for the asset, in fallback order."""
        chain: list[PriceProvider] = []
        for name in provider_chain(asset.type):
            provider = self._providers.get(name)
            if provider is None or not provider.is_enabled():
                logger.debug("Skipping disabled provider %s for %s", name, asset.id)
                continue
            chain.append(provider)
        return chain

    async def resolve(self, asset: Asset) -> PriceQuote:
        """First non-null quote along the chain.

        Raises:
            ResolutionError: every provider was disabled, failed, or had no data.
        """
        tried: list[str] = []
        for provider in self.chain_for(asset):
            tried.append(provider.name.value)
            if provider.min_interval > 0:
                await self._limiters.get(provider.name.value, provider.min_interval).wait()
            try:
                quote = await provider.fetch_price(asset)
            except Exception as e:
                logger.error(
                    "Provider %s failed for asset %s (%s): %s",
                    provider.name, asset.id, asset.symbol or asset.name, e,
                )
                continue

            if quote is None:
                logger.warning(
                    "Provider %s has no price for asset %s (%s)",
                    provider.name, asset.id, asset.symbol or asset.name,
                )
                continue

            logger.info(
                "Resolved %s (%s) at %.4f %s via %s",
                asset.id, asset.symbol or asset.name, quote.price, quote.currency, quote.source,
            )
            return quote

        raise ResolutionError(
            NO_PRICE_AVAILABLE,
            context={"asset_id": asset.id, "asset_type": str(asset.type), "tried": tried},
        )

    async def close(self) -> None:
        for provider in self._providers.values():
            await provider.close()
