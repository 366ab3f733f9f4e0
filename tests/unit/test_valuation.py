"""Tests for price_aggregator.pricing.valuation."""

from __future__ import annotations

import pytest

from price_aggregator.core.models import PriceQuote
from price_aggregator.pricing.history import HistoryRecorder
from price_aggregator.pricing.valuation import ValuationUpdater, compute_valuation


class TestComputeValuation:
    def test_gain(self, make_asset, fixed_now):
        asset = make_asset(quantity=2, purchase_price=30000)
        v = compute_valuation(asset, 50000, fixed_now)
        assert v.current_price == 50000
        assert v.total_value == 100000
        assert v.total_gain == 40000
        assert v.total_gain_percent == pytest.approx(66.6667, rel=1e-4)
        assert v.last_price_update == fixed_now

    def test_loss(self, make_asset, fixed_now):
        asset = make_asset(quantity=10, purchase_price=100)
        v = compute_valuation(asset, 80, fixed_now)
        assert v.total_gain == -200
        assert v.total_gain_percent == pytest.approx(-20)

    def test_zero_cost_basis(self, make_asset, fixed_now):
        asset = make_asset(quantity=5, purchase_price=0)
        v = compute_valuation(asset, 10, fixed_now)
        assert v.total_value == 50
        assert v.total_gain == 50
        assert v.total_gain_percent == 0.0


class TestValuationUpdater:
    async def test_writes_valuation_and_history(self, store, btc_asset, fixed_now):
        await store.save_asset(btc_asset)
        history = HistoryRecorder(store, clock=lambda: fixed_now)
        updater = ValuationUpdater(store, history, clock=lambda: fixed_now)

        quote = PriceQuote(price=50000, currency="EUR", source="coingecko")
        updated = await updater.apply(btc_asset, quote)

        assert updated.current_price == 50000
        assert updated.total_value == 100000
        assert updated.last_price_update == fixed_now

        latest = await store.get_latest_price(btc_asset.id)
        assert latest.price == 50000
        assert latest.source == "coingecko"
        assert latest.recorded_at == fixed_now

    async def test_history_failure_keeps_valuation(self, store, btc_asset, fixed_now):
        class BrokenHistoryStore:
            async def append_price(self, record):
                raise RuntimeError("disk full")

        await store.save_asset(btc_asset)
        updater = ValuationUpdater(
            store, HistoryRecorder(BrokenHistoryStore()), clock=lambda: fixed_now
        )

        quote = PriceQuote(price=42000, currency="EUR", source="binance")
        updated = await updater.apply(btc_asset, quote)

        assert updated.current_price == 42000
        assert (await store.get_asset(btc_asset.id)).current_price == 42000
