"""Collector car valuation.

Three sources, tried in this order by the resolver:

1. ``CollectorCarProvider`` — curated base values for well-known collector
   models by production decade. Only answers for collector cars (25y+ or a
   collector brand/model).
2. ``CarValuationProvider`` — general vehicle valuation API (La Centrale).
3. ``CarDepreciationProvider`` — staged depreciation from an approximate
   new price. Always answers when the model year is known; floor 1000 EUR.

The tables below are illustrative market defaults, not appraisals.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from datetime import UTC, date, datetime

from price_aggregator.core.models import Asset, AssetType, PriceQuote, ProviderName, SearchResult
from price_aggregator.providers.base import BaseProvider, HttpProvider, parse_price

logger = logging.getLogger(__name__)

_CURRENCY = "EUR"
_MAX_SEARCH_RESULTS = 10
_VALUATION_BASE_URL = "https://api.lacentrale.fr/v1"
_DEFAULT_MILEAGE = 100_000
_DEFAULT_FUEL_TYPE = "essence"

_COLLECTOR_AGE = 25
_COLLECTOR_BRANDS = (
    "ferrari", "lamborghini", "porsche", "aston martin", "mclaren",
    "bugatti", "koenigsegg", "pagani", "lotus", "alpine",
)
_COLLECTOR_MODELS = ("golf gti", "bmw m3", "911 turbo", "type r", "rs", "amg", "quattro")

# brand -> model -> base value per decade starting with the 1970s
_COLLECTOR_BASE_VALUES: dict[str, dict[str, tuple[float, ...]]] = {
    "porsche": {
        "911": (50000, 80000, 120000, 200000),
        "944": (15000, 25000, 35000, 50000),
        "boxster": (20000, 30000, 45000, 65000),
    },
    "ferrari": {
        "308": (80000, 120000, 180000, 300000),
        "348": (60000, 90000, 130000, 200000),
        "355": (90000, 130000, 180000, 280000),
    },
    "bmw": {
        "m3": (25000, 35000, 50000, 80000),
        "z3": (15000, 25000, 35000, 50000),
        "z4": (20000, 30000, 45000, 65000),
    },
}
_FIRST_DECADE = 1970

_COLLECTOR_CONDITION: dict[str, float] = {
    "concours": 1.3,
    "excellent": 1.1,
    "good": 1.0,
    "fair": 0.7,
    "poor": 0.4,
    "restoration": 0.3,
}
_COLLECTOR_DEFAULT_CONDITION = 0.8

# Approximate new prices used by the depreciation model.
_NEW_PRICES: dict[str, float] = {
    "mercedes": 45000,
    "bmw": 42000,
    "audi": 40000,
    "volkswagen": 25000,
    "renault": 20000,
    "peugeot": 22000,
    "citroën": 20000,
    "toyota": 25000,
    "honda": 23000,
    "ford": 20000,
    "opel": 18000,
    "fiat": 16000,
}
_DEFAULT_NEW_PRICE = 20000.0
_ANNUAL_MILEAGE = 15_000
_DEPRECIATION_CONDITION: dict[str, float] = {
    "excellent": 1.1,
    "good": 1.0,
    "fair": 0.8,
    "poor": 0.6,
}
_MIN_CAR_VALUE = 1000.0


def _utc_today() -> date:
    return datetime.now(UTC).date()


def _norm(value: str | None) -> str:
    return (value or "").strip().lower()


def is_collector_car(brand: str | None, model: str | None, year: int | None, today: date) -> bool:
    """25 years or older, or a brand/model collectors chase regardless of age."""
    if year is not None and today.year - year >= _COLLECTOR_AGE:
        return True
    brand_l, model_l = _norm(brand), _norm(model)
    return any(b in brand_l for b in _COLLECTOR_BRANDS) or any(
        m in model_l for m in _COLLECTOR_MODELS
    )


def collector_base_value(brand: str | None, model: str | None, year: int) -> float | None:
    """Curated value for the model's production decade, or None when uncatalogued."""
    values = _COLLECTOR_BASE_VALUES.get(_norm(brand), {}).get(_norm(model))
    if values is None:
        return None
    decade = (year - _FIRST_DECADE) // 10
    return values[min(max(decade, 0), len(values) - 1)]


def depreciated_value(
    brand: str | None,
    year: int,
    today: date,
    mileage: int | None = None,
    condition: str | None = None,
) -> float:
    """Staged depreciation from the brand's new price.

    The first five years lose 15%/year; later stages slow to 8%, 5% and 2%
    as the car ages into a collectible. Unusually high or low mileage for
    the age moves the value by -20% / +10%.
    """
    age = max(today.year - year, 0)
    value = _NEW_PRICES.get(_norm(brand), _DEFAULT_NEW_PRICE)

    rate = 0.15
    if age > 5:
        rate = 0.08
    if age > 10:
        rate = 0.05
    if age > 15:
        rate = 0.02

    value *= math.pow(1 - rate, min(age, 5))
    if age > 5:
        value *= math.pow(0.92, min(age - 5, 5))
    if age > 10:
        value *= math.pow(0.95, min(age - 10, 5))
    if age > 15:
        value *= math.pow(0.98, age - 15)

    if mileage:
        expected = age * _ANNUAL_MILEAGE
        if mileage > expected * 1.5:
            value *= 0.8
        elif mileage < expected * 0.5:
            value *= 1.1

    if condition:
        value *= _DEPRECIATION_CONDITION.get(_norm(condition), 1.0)

    return float(round(max(value, _MIN_CAR_VALUE)))


class CollectorCarProvider(BaseProvider):
    """Curated decade table × condition, for collector cars only."""

    name = ProviderName.COLLECTOR_CAR
    asset_types = frozenset({AssetType.COLLECTOR_CAR})

    def __init__(self, today: Callable[[], date] = _utc_today) -> None:
        self._today = today

    async def fetch_price(self, asset: Asset) -> PriceQuote | None:
        if asset.year is None:
            return None
        if not is_collector_car(asset.brand, asset.model, asset.year, self._today()):
            return None

        base = collector_base_value(asset.brand, asset.model, asset.year)
        if base is None:
            logger.info("No curated collector value for %s %s", asset.brand, asset.model)
            return None

        multiplier = _COLLECTOR_CONDITION.get(_norm(asset.condition), _COLLECTOR_DEFAULT_CONDITION)
        price = float(round(base * multiplier))
        return PriceQuote(
            price=price,
            currency=_CURRENCY,
            source=self.name.value,
            metadata={"base_value": base, "condition_multiplier": multiplier},
        )


class CarValuationProvider(HttpProvider):
    """General used-car valuation API; answers with the average market price."""

    name = ProviderName.CAR_VALUATION
    asset_types = frozenset({AssetType.COLLECTOR_CAR})
    default_base_url = _VALUATION_BASE_URL
    requires_api_key = True

    async def fetch_price(self, asset: Asset) -> PriceQuote | None:
        if not asset.brand or not asset.model or asset.year is None:
            return None

        data = await self.http.get_json(
            "/valuation",
            params={
                "brand": _norm(asset.brand),
                "model": _norm(asset.model),
                "year": asset.year,
                "mileage": asset.mileage or _DEFAULT_MILEAGE,
                "fuel_type": _DEFAULT_FUEL_TYPE,
                "apikey": self.api_key,
            },
        )

        valuation = data.get("valuation") or {}
        price = parse_price(valuation.get("average"))
        if price is None:
            logger.warning("Car valuation has no price for %s %s %s", asset.brand, asset.model, asset.year)
            return None

        return PriceQuote(
            price=price,
            currency=_CURRENCY,
            source=self.name.value,
            metadata={
                "trade": parse_price(valuation.get("trade")),
                "private": parse_price(valuation.get("private")),
                "retail": parse_price(valuation.get("retail")),
            },
        )

    async def search(self, query: str) -> list[SearchResult]:
        data = await self.http.get_json(
            "/search",
            params={"q": query, "limit": _MAX_SEARCH_RESULTS, "apikey": self.api_key},
        )
        results = []
        for car in (data.get("cars") or [])[:_MAX_SEARCH_RESULTS]:
            car_id = car.get("id")
            if not car_id:
                continue
            parts = (car.get("brand"), car.get("model"), car.get("year"))
            results.append(
                SearchResult(
                    symbol=str(car_id),
                    name=" ".join(str(p) for p in parts if p) or str(car_id),
                    type=AssetType.COLLECTOR_CAR.value,
                    region="FR",
                    currency=_CURRENCY,
                    provider=self.name.value,
                )
            )
        return results


class CarDepreciationProvider(BaseProvider):
    """Last-resort estimate; needs only the model year."""

    name = ProviderName.CAR_DEPRECIATION
    asset_types = frozenset({AssetType.COLLECTOR_CAR})

    def __init__(self, today: Callable[[], date] = _utc_today) -> None:
        self._today = today

    async def fetch_price(self, asset: Asset) -> PriceQuote | None:
        if asset.year is None:
            return None

        price = depreciated_value(
            asset.brand, asset.year, self._today(), asset.mileage, asset.condition
        )
        return PriceQuote(
            price=price,
            currency=_CURRENCY,
            source=self.name.value,
            metadata={"method": "staged_depreciation"},
        )
