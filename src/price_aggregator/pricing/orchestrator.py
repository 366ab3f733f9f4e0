"""Batch orchestration of price updates.

Every entry point funnels through the same path:

    AssetRepository.get_asset → PriceResolver.resolve → ValuationUpdater.apply

Batches run sequentially so a rate-limited provider is never burst beyond
its quota, and each asset's failure is isolated into its own report entry.
"""

from __future__ import annotations

import logging

from price_aggregator.core.config import PricingConfig
from price_aggregator.core.exceptions import (
    AssetNotFoundError,
    MissingSymbolError,
    PriceAggregatorError,
)
from price_aggregator.core.models import (
    TRACKABLE_TYPES,
    Asset,
    AssetId,
    AssetUpdateResult,
    BatchUpdateReport,
    PriceQuote,
)
from price_aggregator.pricing.history import HistoryRecorder
from price_aggregator.pricing.resolver import PriceResolver
from price_aggregator.pricing.valuation import ValuationUpdater
from price_aggregator.storage.store import AssetRepository

logger = logging.getLogger(__name__)

ASSET_NOT_FOUND = "Asset not found"
ASSET_HAS_NO_SYMBOL = "Asset has no symbol"


class PriceUpdateOrchestrator:
    """Single-asset, list and "all trackable" price updates plus scheduled jobs."""

    def __init__(
        self,
        assets: AssetRepository,
        resolver: PriceResolver,
        updater: ValuationUpdater,
        history: HistoryRecorder,
        pricing: PricingConfig | None = None,
    ) -> None:
        self._assets = assets
        self._resolver = resolver
        self._updater = updater
        self._history = history
        self._pricing = pricing or PricingConfig()

    async def _load(self, asset_id: AssetId) -> Asset:
        asset = await self._assets.get_asset(asset_id)
        if asset is None:
            raise AssetNotFoundError(ASSET_NOT_FOUND, context={"asset_id": asset_id})
        if asset.requires_symbol and not asset.symbol:
            raise MissingSymbolError(
                ASSET_HAS_NO_SYMBOL,
                context={"asset_id": asset_id, "asset_type": str(asset.type)},
            )
        return asset

    async def refresh(self, asset_id: AssetId) -> tuple[Asset, PriceQuote]:
        """Resolve and persist a new price, raising typed errors on failure.

        Raises:
            AssetNotFoundError: unknown id.
            MissingSymbolError: financial asset without a symbol.
            ResolutionError: no provider produced a quote.
            StorageError: the valuation write failed.
        """
        asset = await self._load(asset_id)
        quote = await self._resolver.resolve(asset)
        updated = await self._updater.apply(asset, quote)
        return updated, quote

    async def update_one(self, asset_id: AssetId) -> AssetUpdateResult:
        """Like ``refresh`` but every failure is folded into the result."""
        try:
            _, quote = await self.refresh(asset_id)
        except PriceAggregatorError as e:
            logger.warning("Price update failed for %s: %s", asset_id, e)
            return AssetUpdateResult(asset_id=asset_id, success=False, error=str(e))
        except Exception as e:
            logger.exception("Unexpected error updating %s", asset_id)
            return AssetUpdateResult(asset_id=asset_id, success=False, error=str(e) or type(e).__name__)

        return AssetUpdateResult(
            asset_id=asset_id,
            success=True,
            price=quote.price,
            source=quote.source,
        )

    async def update_many(self, asset_ids: list[AssetId]) -> BatchUpdateReport:
        report = BatchUpdateReport()
        for asset_id in asset_ids:
            report.add(await self.update_one(asset_id))
        logger.info(
            "Batch update finished: %d succeeded, %d failed",
            report.succeeded, report.failed,
        )
        return report

    async def update_all(self) -> BatchUpdateReport:
        try:
            assets = await self._assets.list_trackable_assets()
        except Exception as e:
            logger.error("Could not list trackable assets: %s", e)
            return BatchUpdateReport()

        ids = [
            a.id
            for a in assets
            if a.is_active and a.type in TRACKABLE_TYPES
        ]
        logger.info("Updating prices for %d trackable assets", len(ids))
        return await self.update_many(ids)

    # --- Scheduled jobs ---

    async def run_scheduled_refresh(self) -> BatchUpdateReport | None:
        """Periodic refresh; skipped when price updates are disabled. Never raises."""
        if not self._pricing.price_updates_enabled:
            logger.info("Scheduled price refresh skipped: price updates disabled")
            return None
        try:
            return await self.update_all()
        except Exception:
            logger.exception("Scheduled price refresh failed")
            return None

    async def run_scheduled_cleanup(self) -> int | None:
        """Daily history pruning; skipped when price updates are disabled. Never raises."""
        if not self._pricing.price_updates_enabled:
            logger.info("Scheduled history cleanup skipped: price updates disabled")
            return None
        try:
            return await self._history.prune(self._pricing.history_retention_days)
        except Exception:
            logger.exception("Scheduled history cleanup failed")
            return None
