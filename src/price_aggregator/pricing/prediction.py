"""Heuristic price predictions, optionally blended with an LLM estimate.

This enrichment sits beside the valuation path, never on it: it only reads
the cached current price and the stored history, and every failure results
in "no prediction" rather than an error.

Indicators are computed over the most recent 100 history points in
chronological order:

- 7 / 30 point moving averages of the latest prices
- annualized volatility of log returns (× √252)
- RSI over the latest 14 changes (50 when there are too few points)
- linear-regression slope over the latest 30 points, normalized by their mean
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import numpy as np
import openai
from pydantic import BaseModel, ConfigDict

from price_aggregator.core.config import PredictionConfig, is_placeholder
from price_aggregator.core.exceptions import PredictionError, StorageError
from price_aggregator.core.models import (
    Asset,
    AssetId,
    AssetType,
    PredictionTimeframe,
    PricePrediction,
)
from price_aggregator.pricing.history import HistoryRecorder
from price_aggregator.storage.store import AssetRepository, PredictionStore

logger = logging.getLogger(__name__)

_HISTORY_POINTS = 100
_HISTORY_LOOKBACK_DAYS = 365
_TRADING_DAYS = 252
_RSI_PERIOD = 14
_TREND_POINTS = 30

_TIMEFRAME_MULTIPLIERS: dict[PredictionTimeframe, float] = {
    PredictionTimeframe.ONE_DAY: 1.001,
    PredictionTimeframe.ONE_WEEK: 1.005,
    PredictionTimeframe.ONE_MONTH: 1.02,
    PredictionTimeframe.ONE_QUARTER: 1.06,
}

_ANNUAL_APPRECIATION: dict[AssetType, float] = {
    AssetType.LUXURY_WATCH: 0.08,
    AssetType.COLLECTOR_CAR: 0.12,
    AssetType.ARTWORK: 0.10,
    AssetType.WINE: 0.15,
}
_DEFAULT_APPRECIATION = 0.05

_RARE_MARQUES = ("patek philippe", "ferrari", "lamborghini", "rolex daytona")
_CONDITION_SCORES: dict[str, float] = {
    "new": 1.0,
    "like new": 0.95,
    "excellent": 0.9,
    "good": 0.8,
    "fair": 0.6,
    "poor": 0.4,
}
_DEFAULT_CONDITION_SCORE = 0.7

FINANCIAL_ALGORITHM = "TECHNICAL_ANALYSIS_ML"
COLLECTIBLE_ALGORITHM = "COLLECTIBLE_VALUATION_ML"
GENERIC_ALGORITHM = "TREND_BASED"

_FINANCIAL_SYSTEM_PROMPT = (
    "You are a financial analyst specializing in price prediction. "
    'Respond with only a JSON object containing "price" and "confidence" fields.'
)
_COLLECTIBLE_SYSTEM_PROMPT = (
    "You are a collectible asset specialist. Analyze luxury watches, collector "
    "cars, and other collectibles for price prediction. "
    'Respond with only a JSON object containing "price" and "confidence" fields.'
)


def _utc_now() -> datetime:
    return datetime.now(UTC)


# --- Indicators ---


def moving_average(prices: np.ndarray, window: int) -> float:
    if prices.size == 0:
        return 0.0
    return float(prices[-window:].mean())


def annualized_volatility(prices: np.ndarray) -> float:
    if prices.size < 2:
        return 0.0
    returns = np.diff(np.log(prices))
    return float(np.sqrt(returns.var() * _TRADING_DAYS))


def relative_strength_index(prices: np.ndarray, period: int = _RSI_PERIOD) -> float:
    if prices.size < period + 1:
        return 50.0
    changes = np.diff(prices[-(period + 1) :])
    avg_gain = float(np.clip(changes, 0, None).mean())
    avg_loss = float(np.clip(-changes, 0, None).mean())
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def normalized_trend(prices: np.ndarray, points: int = _TREND_POINTS) -> float:
    if prices.size < 2:
        return 0.0
    recent = prices[-points:]
    x = np.arange(recent.size, dtype=float)
    slope = float(np.polyfit(x, recent, 1)[0])
    mean = float(recent.mean())
    return slope / mean if mean else 0.0


def rarity_score(brand: str | None) -> float:
    brand_l = (brand or "").lower()
    return 0.9 if any(m in brand_l for m in _RARE_MARQUES) else 0.5


def condition_score(condition: str | None) -> float:
    if not condition:
        return _DEFAULT_CONDITION_SCORE
    return _CONDITION_SCORES.get(condition.strip().lower(), _DEFAULT_CONDITION_SCORE)


class PredictionFactors(BaseModel):
    """Inputs the heuristics and the LLM prompt are built from."""

    model_config = ConfigDict(frozen=True)

    moving_average_7: float
    moving_average_30: float
    volatility: float
    rsi: float
    trend: float
    points: int
    age: int | None = None
    rarity: float
    condition: float

    @classmethod
    def from_prices(cls, asset: Asset, prices: list[float], today: datetime) -> PredictionFactors:
        arr = np.asarray(prices, dtype=float)
        return cls(
            moving_average_7=moving_average(arr, 7),
            moving_average_30=moving_average(arr, 30),
            volatility=annualized_volatility(arr),
            rsi=relative_strength_index(arr),
            trend=normalized_trend(arr),
            points=int(arr.size),
            age=asset.age(today.date()),
            rarity=rarity_score(asset.brand),
            condition=condition_score(asset.condition),
        )


# --- LLM estimate ---


class LLMPriceEstimator:
    """OpenAI-compatible chat completion returning ``{"price", "confidence"}``.

    Follows the provider contract: disabled without a usable key, and
    ``estimate`` fails soft to ``None``.
    """

    name = "openai"

    def __init__(self, config: PredictionConfig, client: Any = None) -> None:
        self._config = config
        self._client = client

    def is_enabled(self) -> bool:
        return self._config.enabled and not is_placeholder(self._config.api_key)

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = openai.AsyncOpenAI(
                api_key=self._config.api_key,
                base_url=self._config.base_url,
                timeout=self._config.timeout_seconds,
            )
        return self._client

    async def _complete(self, system_prompt: str, prompt: str) -> str:
        try:
            response = await self._get_client().chat.completions.create(
                model=self._config.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.3,
                max_tokens=150,
            )
            return response.choices[0].message.content or ""
        except openai.APIStatusError as e:
            raise PredictionError(
                f"OpenAI API error: {e.message}",
                context={"provider": self.name, "status_code": e.status_code},
            ) from e
        except openai.APIConnectionError as e:
            raise PredictionError(
                f"OpenAI connection error: {e}",
                context={"provider": self.name, "status_code": None},
            ) from e

    async def estimate(self, system_prompt: str, prompt: str) -> tuple[float, float] | None:
        """(price, confidence) or None when disabled, failing or unparseable."""
        if not self.is_enabled():
            return None
        try:
            content = await self._complete(system_prompt, prompt)
            parsed = json.loads(content)
            price = float(parsed["price"])
            confidence = float(parsed["confidence"])
        except PredictionError as e:
            logger.warning("LLM prediction failed: %s", e)
            return None
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("LLM prediction unparseable: %s", e)
            return None

        if not price > 0:
            logger.warning("LLM predicted a non-positive price: %s", price)
            return None
        return price, min(max(confidence, 0.0), 1.0)


# --- Prediction service ---


class PredictionService:
    """Builds a ``PricePrediction`` for an asset and timeframe."""

    def __init__(
        self,
        assets: AssetRepository,
        history: HistoryRecorder,
        llm: LLMPriceEstimator | None = None,
        predictions: PredictionStore | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._assets = assets
        self._history = history
        self._llm = llm
        self._predictions = predictions
        self._clock = clock

    async def predict(
        self,
        asset_id: AssetId,
        timeframe: PredictionTimeframe = PredictionTimeframe.ONE_WEEK,
    ) -> PricePrediction | None:
        try:
            asset = await self._assets.get_asset(asset_id)
            if asset is None:
                logger.warning("Asset %s not found for prediction", asset_id)
                return None
            if not asset.current_price:
                logger.info("Asset %s has no current price, skipping prediction", asset_id)
                return None

            records = await self._history.history(asset_id, days=_HISTORY_LOOKBACK_DAYS)
            prices = [r.price for r in records[-_HISTORY_POINTS:]]
            now = self._clock()
            factors = PredictionFactors.from_prices(asset, prices, now)

            match asset.type:
                case AssetType.CRYPTO | AssetType.STOCK | AssetType.ETF:
                    price, confidence, algorithm = await self._financial(asset, factors, timeframe)
                case AssetType.LUXURY_WATCH | AssetType.COLLECTOR_CAR:
                    price, confidence, algorithm = await self._collectible(asset, factors, timeframe)
                case _:
                    price, confidence, algorithm = self._generic(asset, factors)

            prediction = PricePrediction(
                asset_id=asset_id,
                predicted_price=round(price, 2),
                confidence=confidence,
                timeframe=timeframe,
                algorithm=algorithm,
                created_at=now,
                expires_at=now + timedelta(days=timeframe.days),
                factors=factors.model_dump(),
            )
        except Exception as e:
            logger.error("Failed to generate prediction for %s: %s", asset_id, e)
            return None

        if self._predictions is not None:
            try:
                await self._predictions.save_prediction(prediction)
            except StorageError as e:
                logger.warning("Prediction for %s not stored: %s", asset_id, e)
        return prediction

    async def active_predictions(
        self, asset_id: AssetId, timeframe: PredictionTimeframe | None = None
    ) -> list[PricePrediction]:
        """Stored predictions that have not expired yet, newest first."""
        if self._predictions is None:
            return []
        return await self._predictions.list_active_predictions(
            asset_id, self._clock(), timeframe
        )

    async def _financial(
        self, asset: Asset, factors: PredictionFactors, timeframe: PredictionTimeframe
    ) -> tuple[float, float, str]:
        price = asset.current_price
        confidence = 0.7

        if factors.moving_average_7 > factors.moving_average_30:
            price *= 1.02
            confidence += 0.1
        else:
            price *= 0.98
            confidence -= 0.1

        if factors.rsi > 70:
            price *= 0.95
            confidence += 0.05
        elif factors.rsi < 30:
            price *= 1.05
            confidence += 0.05

        if factors.volatility > 0.3:
            confidence -= 0.2

        price *= _TIMEFRAME_MULTIPLIERS[timeframe]

        if self._llm is not None:
            ai = await self._llm.estimate(
                _FINANCIAL_SYSTEM_PROMPT, self._financial_prompt(asset, factors, timeframe)
            )
            if ai is not None:
                price = (price + ai[0]) / 2
                confidence = max(confidence, ai[1])

        return price, min(max(confidence, 0.1), 0.95), FINANCIAL_ALGORITHM

    async def _collectible(
        self, asset: Asset, factors: PredictionFactors, timeframe: PredictionTimeframe
    ) -> tuple[float, float, str]:
        price = asset.current_price
        confidence = 0.6

        if factors.age is not None and factors.age > 25:
            price *= 1.02
            confidence += 0.1
        if factors.rarity > 0.8:
            price *= 1.05
            confidence += 0.1
        if factors.condition > 0.9:
            price *= 1.03
            confidence += 0.05

        appreciation = _ANNUAL_APPRECIATION.get(asset.type, _DEFAULT_APPRECIATION)
        price *= (1 + appreciation) ** (timeframe.days / 365)

        if self._llm is not None:
            ai = await self._llm.estimate(
                _COLLECTIBLE_SYSTEM_PROMPT, self._collectible_prompt(asset, factors, timeframe)
            )
            if ai is not None:
                price = (price + ai[0]) / 2
                confidence = max(confidence, ai[1])

        return price, min(max(confidence, 0.1), 0.85), COLLECTIBLE_ALGORITHM

    @staticmethod
    def _generic(asset: Asset, factors: PredictionFactors) -> tuple[float, float, str]:
        return asset.current_price * (1 + factors.trend), 0.5, GENERIC_ALGORITHM

    @staticmethod
    def _financial_prompt(
        asset: Asset, factors: PredictionFactors, timeframe: PredictionTimeframe
    ) -> str:
        return (
            f"Analyze this {asset.type} asset for {timeframe} price prediction:\n\n"
            f"Current Price: {asset.current_price} {asset.currency}\n"
            f"Symbol: {asset.symbol}\n"
            f"7-point MA: {factors.moving_average_7:.4f}\n"
            f"30-point MA: {factors.moving_average_30:.4f}\n"
            f"Volatility: {factors.volatility:.4f}\n"
            f"RSI: {factors.rsi:.2f}\n"
            f"Trend: {factors.trend:.6f}\n\n"
            f"Predict the price for the {timeframe} timeframe and a confidence level (0-1)."
        )

    @staticmethod
    def _collectible_prompt(
        asset: Asset, factors: PredictionFactors, timeframe: PredictionTimeframe
    ) -> str:
        return (
            f"Analyze this {asset.type} collectible for {timeframe} price prediction:\n\n"
            f"Brand: {asset.brand}\n"
            f"Model: {asset.model}\n"
            f"Year: {asset.year}\n"
            f"Condition: {asset.condition}\n"
            f"Current Price: {asset.current_price} {asset.currency}\n"
            f"Age: {factors.age} years\n"
            f"Rarity Score: {factors.rarity}\n"
            f"Condition Score: {factors.condition}\n\n"
            "Consider market trends, historical appreciation, and collectible market dynamics.\n"
            f"Predict the price for the {timeframe} timeframe and a confidence level (0-1)."
        )
