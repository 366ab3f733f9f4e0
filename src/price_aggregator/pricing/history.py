"""Price history recording, retrieval, statistics and retention."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from price_aggregator.core.models import AssetId, PriceRecord, PriceStatistics
from price_aggregator.storage.store import PriceHistoryStore

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_DAYS = 30
DEFAULT_RETENTION_DAYS = 365


def _utc_now() -> datetime:
    return datetime.now(UTC)


def compute_statistics(records: list[PriceRecord]) -> PriceStatistics | None:
    """Aggregate an ascending series; None for an empty one."""
    if not records:
        return None

    prices = [r.price for r in records]
    first, last = prices[0], prices[-1]
    change = (last - first) / first * 100 if first != 0 else 0.0
    return PriceStatistics(
        current=last,
        min=min(prices),
        max=max(prices),
        avg=sum(prices) / len(prices),
        change_percent=change,
        count=len(prices),
    )


class HistoryRecorder:
    """Front for the history store used by the valuation path and readers.

    ``record`` never raises: a lost history point must not fail a price
    update whose valuation has already been written.
    """

    def __init__(
        self,
        store: PriceHistoryStore,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = store
        self._clock = clock

    async def record(
        self,
        asset_id: AssetId,
        price: float,
        source: str,
        recorded_at: datetime | None = None,
    ) -> bool:
        try:
            record = PriceRecord(
                asset_id=asset_id,
                price=price,
                source=source,
                recorded_at=recorded_at or self._clock(),
            )
            inserted = await self._store.append_price(record)
        except Exception as e:
            logger.error("Failed to record price history for %s: %s", asset_id, e)
            return False
        if not inserted:
            logger.debug("History point for %s at %s already recorded", asset_id, record.recorded_at)
        return True

    async def history(self, asset_id: AssetId, days: int = DEFAULT_HISTORY_DAYS) -> list[PriceRecord]:
        since = self._clock() - timedelta(days=days)
        return await self._store.get_prices_since(asset_id, since)

    async def statistics(
        self, asset_id: AssetId, days: int = DEFAULT_HISTORY_DAYS
    ) -> PriceStatistics | None:
        return compute_statistics(await self.history(asset_id, days))

    async def latest(self, asset_id: AssetId) -> PriceRecord | None:
        return await self._store.get_latest_price(asset_id)

    async def prune(self, retention_days: int = DEFAULT_RETENTION_DAYS) -> int:
        """Delete records older than the retention window; returns the count."""
        cutoff = self._clock() - timedelta(days=retention_days)
        deleted = await self._store.delete_prices_before(cutoff)
        logger.info("Pruned %d price records older than %s", deleted, cutoff.date())
        return deleted
