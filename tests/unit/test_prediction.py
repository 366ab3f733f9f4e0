"""Tests for price_aggregator.pricing.prediction."""

from __future__ import annotations

from datetime import timedelta

import numpy as np
import pytest

from price_aggregator.core.config import PredictionConfig
from price_aggregator.core.exceptions import PredictionError, StorageError
from price_aggregator.core.models import AssetType, PredictionTimeframe
from price_aggregator.pricing.history import HistoryRecorder
from price_aggregator.pricing.prediction import (
    COLLECTIBLE_ALGORITHM,
    FINANCIAL_ALGORITHM,
    GENERIC_ALGORITHM,
    LLMPriceEstimator,
    PredictionService,
    annualized_volatility,
    moving_average,
    normalized_trend,
    relative_strength_index,
)


class ScriptedLLM(LLMPriceEstimator):
    """Estimator whose completion is a canned string or exception."""

    def __init__(self, reply: str | Exception, enabled: bool = True) -> None:
        super().__init__(PredictionConfig(enabled=enabled, api_key="sk-test"))
        self.reply = reply
        self.prompts: list[str] = []

    async def _complete(self, system_prompt: str, prompt: str) -> str:
        self.prompts.append(prompt)
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


class TestIndicators:
    def test_moving_average_uses_latest(self):
        prices = np.arange(1, 11, dtype=float)
        assert moving_average(prices, 3) == pytest.approx(9.0)
        assert moving_average(prices, 30) == pytest.approx(5.5)
        assert moving_average(np.array([]), 7) == 0.0

    def test_volatility(self):
        assert annualized_volatility(np.array([100.0])) == 0.0
        assert annualized_volatility(np.full(10, 100.0)) == 0.0
        assert annualized_volatility(np.array([100.0, 110.0, 95.0, 105.0])) > 0

    def test_rsi_too_few_points(self):
        assert relative_strength_index(np.arange(1, 10, dtype=float)) == 50.0

    def test_rsi_only_gains(self):
        assert relative_strength_index(np.arange(1, 20, dtype=float)) == 100.0

    def test_rsi_only_losses(self):
        assert relative_strength_index(np.arange(20, 1, -1, dtype=float)) == pytest.approx(0.0)

    def test_trend_sign_follows_time(self):
        rising = np.linspace(100, 130, 30)
        assert normalized_trend(rising) > 0
        assert normalized_trend(rising[::-1]) < 0
        assert normalized_trend(np.array([5.0])) == 0.0


class TestLLMPriceEstimator:
    def test_disabled_without_key(self):
        assert not LLMPriceEstimator(PredictionConfig(enabled=True)).is_enabled()
        assert not LLMPriceEstimator(PredictionConfig(enabled=False, api_key="sk")).is_enabled()
        assert LLMPriceEstimator(PredictionConfig(enabled=True, api_key="sk")).is_enabled()

    async def test_parses_json(self):
        llm = ScriptedLLM('{"price": 101.5, "confidence": 0.8}')
        assert await llm.estimate("sys", "prompt") == (101.5, 0.8)

    async def test_clamps_confidence(self):
        llm = ScriptedLLM('{"price": 10, "confidence": 3}')
        assert await llm.estimate("sys", "prompt") == (10.0, 1.0)

    @pytest.mark.parametrize(
        "reply", ["not json", '{"price": 10}', '{"price": -1, "confidence": 0.5}']
    )
    async def test_bad_reply(self, reply):
        assert await ScriptedLLM(reply).estimate("sys", "prompt") is None

    async def test_api_error(self):
        llm = ScriptedLLM(PredictionError("OpenAI API error: 500"))
        assert await llm.estimate("sys", "prompt") is None

    async def test_disabled_never_calls(self):
        llm = ScriptedLLM('{"price": 1, "confidence": 1}', enabled=False)
        assert await llm.estimate("sys", "prompt") is None
        assert llm.prompts == []


class TestPredictionService:
    @pytest.fixture
    def service_for(self, store, fixed_now):
        def _make(llm: LLMPriceEstimator | None = None) -> PredictionService:
            history = HistoryRecorder(store, clock=lambda: fixed_now)
            return PredictionService(store, history, llm, clock=lambda: fixed_now)

        return _make

    async def _seed_history(self, store, asset_id, prices, now):
        history = HistoryRecorder(store, clock=lambda: now)
        n = len(prices)
        for i, price in enumerate(prices):
            await history.record(asset_id, price, "coingecko", now - timedelta(days=n - i))

    async def test_unknown_asset(self, service_for):
        assert await service_for().predict("ghost") is None

    async def test_no_current_price(self, service_for, store, btc_asset):
        await store.save_asset(btc_asset)
        assert await service_for().predict(btc_asset.id) is None

    async def test_financial_uptrend(self, service_for, store, make_asset, fixed_now):
        asset = make_asset(current_price=130.0)
        await store.save_asset(asset)
        prices = [float(p) for p in np.linspace(100, 130, 40)]
        await self._seed_history(store, asset.id, prices, fixed_now)

        prediction = await service_for().predict(asset.id, PredictionTimeframe.ONE_WEEK)

        assert prediction.algorithm == FINANCIAL_ALGORITHM
        assert prediction.timeframe == PredictionTimeframe.ONE_WEEK
        assert prediction.expires_at == fixed_now + timedelta(days=7)
        # MA7 > MA30 (+2%), overbought RSI (-5%), 1w multiplier
        assert prediction.predicted_price == pytest.approx(130 * 1.02 * 0.95 * 1.005, abs=0.01)
        assert 0.1 <= prediction.confidence <= 0.95
        assert prediction.factors["trend"] > 0

    async def test_financial_blends_llm(self, service_for, store, make_asset, fixed_now):
        asset = make_asset(current_price=100.0)
        await store.save_asset(asset)
        llm = ScriptedLLM('{"price": 200, "confidence": 0.9}')

        prediction = await service_for(llm).predict(asset.id, PredictionTimeframe.ONE_DAY)

        heuristic = 100 * 0.98 * 1.001
        assert prediction.predicted_price == pytest.approx((heuristic + 200) / 2, abs=0.01)
        assert prediction.confidence == pytest.approx(0.9)
        assert "BTC" in llm.prompts[0]

    async def test_llm_failure_falls_back_to_heuristic(
        self, service_for, store, make_asset
    ):
        asset = make_asset(current_price=100.0)
        await store.save_asset(asset)
        llm = ScriptedLLM(PredictionError("boom"))

        prediction = await service_for(llm).predict(asset.id, PredictionTimeframe.ONE_DAY)

        assert prediction.predicted_price == pytest.approx(100 * 0.98 * 1.001, abs=0.01)

    async def test_collectible(self, service_for, store, make_asset):
        watch = make_asset(
            id="w1",
            type=AssetType.LUXURY_WATCH,
            symbol=None,
            brand="Patek Philippe",
            model="Calatrava",
            year=1990,
            condition="excellent",
            current_price=20000.0,
        )
        await store.save_asset(watch)

        prediction = await service_for().predict("w1", PredictionTimeframe.ONE_QUARTER)

        expected = 20000 * 1.02 * 1.05 * (1.08 ** (90 / 365))
        assert prediction.algorithm == COLLECTIBLE_ALGORITHM
        assert prediction.predicted_price == pytest.approx(expected, abs=0.01)
        assert prediction.confidence == pytest.approx(0.8)

    async def test_generic(self, service_for, store, make_asset):
        bond = make_asset(id="b1", type=AssetType.BOND, symbol="TLT", current_price=90.0)
        await store.save_asset(bond)

        prediction = await service_for().predict("b1")

        assert prediction.algorithm == GENERIC_ALGORITHM
        assert prediction.predicted_price == 90.0
        assert prediction.confidence == 0.5


class TestPredictionPersistence:
    @pytest.fixture
    def persisting(self, store, fixed_now):
        history = HistoryRecorder(store, clock=lambda: fixed_now)
        return PredictionService(store, history, predictions=store, clock=lambda: fixed_now)

    async def test_prediction_is_stored(self, persisting, store, make_asset, fixed_now):
        await store.save_asset(make_asset(id="b1", type=AssetType.BOND, current_price=90.0))

        prediction = await persisting.predict("b1", PredictionTimeframe.ONE_MONTH)

        active = await persisting.active_predictions("b1")
        assert len(active) == 1
        assert active[0].predicted_price == prediction.predicted_price
        assert active[0].timeframe == PredictionTimeframe.ONE_MONTH
        assert active[0].expires_at == fixed_now + timedelta(days=30)
        assert await store.list_active_predictions("b1", fixed_now + timedelta(days=31)) == []

    async def test_timeframe_filter(self, persisting, store, make_asset):
        await store.save_asset(make_asset(id="b1", type=AssetType.BOND, current_price=90.0))
        await persisting.predict("b1", PredictionTimeframe.ONE_DAY)
        await persisting.predict("b1", PredictionTimeframe.ONE_WEEK)

        weekly = await persisting.active_predictions("b1", PredictionTimeframe.ONE_WEEK)
        assert [p.timeframe for p in weekly] == [PredictionTimeframe.ONE_WEEK]

    async def test_store_failure_still_returns_prediction(self, store, make_asset, fixed_now):
        class BrokenPredictions:
            async def save_prediction(self, prediction):
                raise StorageError("disk full")

        await store.save_asset(make_asset(id="b1", type=AssetType.BOND, current_price=90.0))
        service = PredictionService(
            store,
            HistoryRecorder(store, clock=lambda: fixed_now),
            predictions=BrokenPredictions(),
            clock=lambda: fixed_now,
        )

        prediction = await service.predict("b1")
        assert prediction.predicted_price == 90.0

    async def test_no_store_lists_nothing(self, store, make_asset, fixed_now):
        await store.save_asset(make_asset(id="b1", type=AssetType.BOND, current_price=90.0))
        service = PredictionService(store, HistoryRecorder(store), clock=lambda: fixed_now)
        assert await service.predict("b1") is not None
        assert await service.active_predictions("b1") == []
        assert await store.list_active_predictions("b1", fixed_now) == []
