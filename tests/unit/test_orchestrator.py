"""Tests for price_aggregator.pricing.orchestrator."""

from __future__ import annotations

import pytest

from price_aggregator.core.config import PricingConfig
from price_aggregator.core.exceptions import AssetNotFoundError, MissingSymbolError
from price_aggregator.core.models import AssetType, ProviderName
from price_aggregator.pricing.history import HistoryRecorder
from price_aggregator.pricing.orchestrator import PriceUpdateOrchestrator
from price_aggregator.pricing.resolver import PriceResolver
from price_aggregator.pricing.valuation import ValuationUpdater


@pytest.fixture
def build(store, make_provider):
    """Wire an orchestrator over the in-memory store and fake providers."""

    def _build(*providers, pricing: PricingConfig | None = None) -> PriceUpdateOrchestrator:
        history = HistoryRecorder(store)
        resolver = PriceResolver({p.name: p for p in providers})
        return PriceUpdateOrchestrator(
            store, resolver, ValuationUpdater(store, history), history, pricing
        )

    return _build


@pytest.fixture
def coingecko(make_provider):
    return make_provider(ProviderName.COINGECKO, {AssetType.CRYPTO}, price=50000)


@pytest.fixture
def yahoo(make_provider):
    return make_provider(ProviderName.YAHOO_FINANCE, {AssetType.STOCK}, price=None)


class TestRefresh:
    async def test_unknown_asset(self, build, coingecko):
        with pytest.raises(AssetNotFoundError, match="Asset not found"):
            await build(coingecko).refresh("ghost")

    async def test_missing_symbol(self, build, store, make_asset, yahoo):
        await store.save_asset(make_asset(id="s1", type=AssetType.STOCK, symbol=None))
        with pytest.raises(MissingSymbolError, match="Asset has no symbol"):
            await build(yahoo).refresh("s1")
        assert yahoo.calls == []

    async def test_collectible_without_symbol(self, build, store, watch_asset, make_provider):
        estimator = make_provider(ProviderName.WATCH_ESTIMATE, {AssetType.LUXURY_WATCH}, price=6480)
        await store.save_asset(watch_asset)
        updated, quote = await build(estimator).refresh(watch_asset.id)
        assert quote.source == "watch_estimate"
        assert updated.total_value == 6480


class TestUpdateOne:
    async def test_success(self, build, store, btc_asset, coingecko):
        await store.save_asset(btc_asset)
        result = await build(coingecko).update_one(btc_asset.id)
        assert result.success
        assert result.price == 50000
        assert result.source == "coingecko"
        assert (await store.get_asset(btc_asset.id)).total_value == 100000
        assert (await store.get_latest_price(btc_asset.id)).price == 50000

    async def test_failure_reported(self, build, coingecko):
        result = await build(coingecko).update_one("ghost")
        assert not result.success
        assert result.error == "Asset not found"

    async def test_no_price(self, build, store, make_asset, make_provider):
        await store.save_asset(make_asset(id="c1"))
        empty = make_provider(ProviderName.COINGECKO, {AssetType.CRYPTO}, price=None)
        result = await build(empty).update_one("c1")
        assert result.error == "No price available"
        assert (await store.get_asset("c1")).current_price is None

    async def test_artwork_without_symbol_reaches_resolver(self, build, store, make_asset, coingecko):
        await store.save_asset(
            make_asset(id="art1", type=AssetType.ARTWORK, symbol=None, brand="Picasso")
        )
        result = await build(coingecko).update_one("art1")
        assert not result.success
        assert result.error == "No price available"

    async def test_unexpected_error_folded(self, build, store, btc_asset, coingecko):
        class ExplodingStore:
            async def get_asset(self, asset_id):
                raise RuntimeError("connection reset")

        orchestrator = build(coingecko)
        orchestrator._assets = ExplodingStore()
        result = await orchestrator.update_one(btc_asset.id)
        assert not result.success
        assert "connection reset" in result.error


class TestUpdateAll:
    async def test_mixed_batch(self, build, store, make_asset, make_provider):
        await store.save_asset(make_asset(id="a1", symbol="BTC"))
        await store.save_asset(make_asset(id="a2", type=AssetType.STOCK, symbol=None))
        await store.save_asset(make_asset(id="a3", type=AssetType.STOCK, symbol="AAPL"))
        await store.save_asset(make_asset(id="a4", type=AssetType.CASH, symbol=None))
        await store.save_asset(make_asset(id="a5", is_active=False))

        coingecko = make_provider(ProviderName.COINGECKO, {AssetType.CRYPTO}, price=50000)
        yahoo = make_provider(ProviderName.YAHOO_FINANCE, {AssetType.STOCK}, price=190)

        report = await build(coingecko, yahoo).update_all()

        assert report.total == 3
        assert report.succeeded == 2
        assert report.failed == 1
        by_id = {d.asset_id: d for d in report.details}
        assert by_id["a2"].error == "Asset has no symbol"
        assert by_id["a1"].success and by_id["a3"].success

    async def test_failures_independent(self, build, store, make_asset, make_provider):
        await store.save_asset(make_asset(id="a1", symbol="BTC"))
        await store.save_asset(make_asset(id="a2", type=AssetType.STOCK, symbol=None))
        await store.save_asset(make_asset(id="a3", type=AssetType.STOCK, symbol="AAPL"))

        coingecko = make_provider(ProviderName.COINGECKO, {AssetType.CRYPTO}, price=50000)
        yahoo = make_provider(ProviderName.YAHOO_FINANCE, {AssetType.STOCK}, price=None)

        report = await build(coingecko, yahoo).update_all()

        assert report.succeeded + report.failed == 3
        by_id = {d.asset_id: d for d in report.details}
        assert by_id["a1"].success
        assert by_id["a2"].error == "Asset has no symbol"
        assert by_id["a3"].error == "No price available"

    async def test_empty(self, build, coingecko):
        report = await build(coingecko).update_all()
        assert report.total == 0

    async def test_repository_failure_yields_empty_report(self, build, coingecko):
        class BrokenRepo:
            async def list_trackable_assets(self):
                raise RuntimeError("db gone")

        orchestrator = build(coingecko)
        orchestrator._assets = BrokenRepo()
        assert (await orchestrator.update_all()).total == 0


class TestUpdateMany:
    async def test_order_and_counts(self, build, store, make_asset, coingecko):
        await store.save_asset(make_asset(id="a1"))
        report = await build(coingecko).update_many(["ghost", "a1"])
        assert [d.asset_id for d in report.details] == ["ghost", "a1"]
        assert report.succeeded == 1
        assert report.failed == 1


class TestScheduledJobs:
    async def test_refresh_disabled(self, build, store, btc_asset, coingecko):
        await store.save_asset(btc_asset)
        orchestrator = build(coingecko, pricing=PricingConfig(price_updates_enabled=False))
        assert await orchestrator.run_scheduled_refresh() is None
        assert coingecko.calls == []

    async def test_refresh_enabled(self, build, store, btc_asset, coingecko):
        await store.save_asset(btc_asset)
        report = await build(coingecko).run_scheduled_refresh()
        assert report.succeeded == 1

    async def test_cleanup_disabled(self, build, coingecko):
        orchestrator = build(coingecko, pricing=PricingConfig(price_updates_enabled=False))
        assert await orchestrator.run_scheduled_cleanup() is None

    async def test_cleanup_enabled(self, build, coingecko):
        assert await build(coingecko).run_scheduled_cleanup() == 0

    async def test_cleanup_never_raises(self, build, coingecko):
        class BrokenHistory:
            async def prune(self, retention_days):
                raise RuntimeError("locked")

        orchestrator = build(coingecko)
        orchestrator._history = BrokenHistory()
        assert await orchestrator.run_scheduled_cleanup() is None
