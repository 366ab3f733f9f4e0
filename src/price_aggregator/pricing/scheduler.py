"""Timer-driven jobs: periodic price refresh and daily history cleanup."""

from __future__ import annotations

import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from price_aggregator.core.config import PricingConfig
from price_aggregator.pricing.orchestrator import PriceUpdateOrchestrator

logger = logging.getLogger(__name__)

REFRESH_JOB_ID = "price_refresh"
CLEANUP_JOB_ID = "history_cleanup"


class PriceScheduler:
    """Wraps an APScheduler ``AsyncIOScheduler`` around the orchestrator.

    The jobs call the same orchestrator methods as on-demand callers. A run
    that is still going when the next one fires is not duplicated
    (``max_instances=1``) and missed runs collapse into one (``coalesce``).
    ``start`` must be called from a running event loop.
    """

    def __init__(
        self,
        orchestrator: PriceUpdateOrchestrator,
        pricing: PricingConfig | None = None,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._pricing = pricing or PricingConfig()
        self._scheduler = scheduler or AsyncIOScheduler(timezone="UTC")
        self._configured = False

    @property
    def scheduler(self) -> AsyncIOScheduler:
        return self._scheduler

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def configure(self) -> None:
        """Register both jobs. Safe to call more than once."""
        self._scheduler.add_job(
            self._orchestrator.run_scheduled_refresh,
            trigger=IntervalTrigger(hours=self._pricing.refresh_interval_hours),
            id=REFRESH_JOB_ID,
            name="Price Refresh",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.add_job(
            self._orchestrator.run_scheduled_cleanup,
            trigger=CronTrigger(hour=self._pricing.cleanup_hour, minute=0),
            id=CLEANUP_JOB_ID,
            name="History Cleanup",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._configured = True

    def start(self) -> None:
        if not self._configured:
            self.configure()
        self._scheduler.start()
        logger.info(
            "Price scheduler started: refresh every %sh, cleanup daily at %02d:00 UTC",
            self._pricing.refresh_interval_hours, self._pricing.cleanup_hour,
        )

    async def shutdown(self) -> None:
        """Stop the scheduler and let its loop-side teardown run."""
        if self._scheduler.running:
            # AsyncIOScheduler defers shutdown to the event loop
            self._scheduler.shutdown(wait=False)
            await asyncio.sleep(0)
            logger.info("Price scheduler stopped")
