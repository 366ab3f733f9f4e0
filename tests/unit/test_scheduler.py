"""Tests for price_aggregator.pricing.scheduler."""

from __future__ import annotations

from datetime import timedelta

import pytest
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from price_aggregator.core.config import PricingConfig
from price_aggregator.pricing.scheduler import (
    CLEANUP_JOB_ID,
    REFRESH_JOB_ID,
    PriceScheduler,
)


class StubOrchestrator:
    def __init__(self) -> None:
        self.refreshes = 0
        self.cleanups = 0

    async def run_scheduled_refresh(self):
        self.refreshes += 1

    async def run_scheduled_cleanup(self):
        self.cleanups += 1


@pytest.fixture
async def scheduler() -> PriceScheduler:
    return PriceScheduler(
        StubOrchestrator(), PricingConfig(refresh_interval_hours=2, cleanup_hour=5)
    )


class TestPriceScheduler:
    async def test_configure_registers_jobs(self, scheduler):
        scheduler.configure()
        jobs = {job.id: job for job in scheduler.scheduler.get_jobs()}
        assert set(jobs) == {REFRESH_JOB_ID, CLEANUP_JOB_ID}

        refresh = jobs[REFRESH_JOB_ID]
        assert isinstance(refresh.trigger, IntervalTrigger)
        assert refresh.trigger.interval == timedelta(hours=2)
        assert refresh.max_instances == 1
        assert refresh.coalesce is True

        cleanup = jobs[CLEANUP_JOB_ID]
        assert isinstance(cleanup.trigger, CronTrigger)
        assert str(cleanup.trigger.fields[cleanup.trigger.FIELD_NAMES.index("hour")]) == "5"

    async def test_configure_on_running_scheduler_replaces(self, scheduler):
        scheduler.start()
        try:
            scheduler.configure()
            assert len(scheduler.scheduler.get_jobs()) == 2
        finally:
            await scheduler.shutdown()

    async def test_start_and_shutdown(self, scheduler):
        scheduler.start()
        assert scheduler.running
        await scheduler.shutdown()
        assert not scheduler.running

    async def test_shutdown_when_stopped(self, scheduler):
        await scheduler.shutdown()
        assert not scheduler.running
