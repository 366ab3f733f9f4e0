"""Valuation recomputation and write-back for a freshly resolved price."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from price_aggregator.core.models import Asset, PriceQuote, ValuationUpdate
from price_aggregator.pricing.history import HistoryRecorder
from price_aggregator.storage.store import AssetRepository

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


def compute_valuation(asset: Asset, price: float, now: datetime) -> ValuationUpdate:
    """Derive the cached valuation fields from a unit price.

    ``total_gain_percent`` is 0 when the cost basis is 0 (gifted or
    airdropped holdings) rather than undefined.
    """
    total_value = price * asset.quantity
    cost_basis = asset.cost_basis
    total_gain = total_value - cost_basis
    gain_percent = total_gain / cost_basis * 100 if cost_basis > 0 else 0.0
    return ValuationUpdate(
        current_price=price,
        total_value=total_value,
        total_gain=total_gain,
        total_gain_percent=gain_percent,
        last_price_update=now,
    )


class ValuationUpdater:
    """Writes a quote back to the asset, then appends it to the history.

    The valuation write comes first and is authoritative. The history append
    is idempotent on (asset, timestamp, source) and its failure is logged by
    the recorder without undoing the valuation.
    """

    def __init__(
        self,
        assets: AssetRepository,
        history: HistoryRecorder,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._assets = assets
        self._history = history
        self._clock = clock

    async def apply(self, asset: Asset, quote: PriceQuote) -> Asset:
        now = self._clock()
        update = compute_valuation(asset, quote.price, now)
        updated = await self._assets.update_valuation(asset.id, update)
        await self._history.record(asset.id, quote.price, quote.source, recorded_at=now)
        logger.debug(
            "Valued %s: %.2f x %s = %.2f (gain %.2f%%)",
            asset.id, quote.price, asset.quantity, update.total_value, update.total_gain_percent,
        )
        return updated
