"""Luxury watch valuation: specialty market API plus an offline estimator."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, date, datetime

from price_aggregator.core.models import Asset, AssetType, PriceQuote, ProviderName, SearchResult
from price_aggregator.providers.base import BaseProvider, HttpProvider, parse_price

logger = logging.getLogger(__name__)

_BASE_URL = "https://api.watchmarket.com/v1"
_DEFAULT_CURRENCY = "EUR"
_MAX_SEARCH_RESULTS = 10

# Indicative pre-owned prices (EUR) for a typical reference of each maison.
_BRAND_BASE_PRICES: dict[str, float] = {
    "rolex": 8000,
    "patek philippe": 25000,
    "audemars piguet": 15000,
    "vacheron constantin": 20000,
    "omega": 3000,
    "tag heuer": 2000,
    "breitling": 2500,
    "iwc": 4000,
    "cartier": 5000,
    "jaeger-lecoultre": 6000,
}
_DEFAULT_BASE_PRICE = 1000.0

_CONDITION_MULTIPLIERS: dict[str, float] = {
    "new": 1.0,
    "like new": 0.95,
    "excellent": 0.9,
    "good": 0.75,
    "fair": 0.6,
    "poor": 0.4,
}
_DEFAULT_CONDITION_MULTIPLIER = 0.8


def _utc_today() -> date:
    return datetime.now(UTC).date()


def watch_age_factor(age: int | None) -> float:
    """Vintage pieces (20y+) appreciate; recent ones trade below retail."""
    if age is None:
        return 1.0
    if age > 20:
        return 1.2
    if age > 10:
        return 0.9
    if age > 5:
        return 0.8
    return 0.7


def estimate_watch_value(
    brand: str | None,
    year: int | None,
    condition: str | None,
    today: date,
) -> float:
    """Brand base price × age factor × condition multiplier, rounded."""
    base = _BRAND_BASE_PRICES.get((brand or "").strip().lower(), _DEFAULT_BASE_PRICE)
    age = today.year - year if year is not None else None
    condition_mult = _CONDITION_MULTIPLIERS.get(
        (condition or "").strip().lower(), _DEFAULT_CONDITION_MULTIPLIER
    )
    return float(round(base * watch_age_factor(age) * condition_mult))


class WatchMarketProvider(HttpProvider):
    """Specialty watch price API, queried with ``"brand model year"``."""

    name = ProviderName.WATCH_MARKET
    asset_types = frozenset({AssetType.LUXURY_WATCH})
    default_base_url = _BASE_URL
    requires_api_key = True

    @staticmethod
    def search_query(asset: Asset) -> str:
        parts = [asset.brand, asset.model, str(asset.year) if asset.year else None]
        return " ".join(p for p in parts if p)

    async def fetch_price(self, asset: Asset) -> PriceQuote | None:
        query = self.search_query(asset)
        if not query:
            return None

        data = await self.http.get_json(
            "/watches/price",
            params={"q": query, "apikey": self.api_key},
        )

        price = parse_price(data.get("price"))
        if price is None:
            logger.warning("Watch market has no price for %r", query)
            return None

        estimated = data.get("estimated_value") or {}
        return PriceQuote(
            price=price,
            currency=data.get("currency") or _DEFAULT_CURRENCY,
            source=self.name.value,
            metadata={
                "query": query,
                "trend_percentage": data.get("trend_percentage"),
                "low": parse_price(estimated.get("low")),
                "high": parse_price(estimated.get("high")),
            },
        )

    async def search(self, query: str) -> list[SearchResult]:
        data = await self.http.get_json(
            "/watches/search",
            params={"q": query, "limit": _MAX_SEARCH_RESULTS, "apikey": self.api_key},
        )
        results = []
        for watch in (data.get("watches") or [])[:_MAX_SEARCH_RESULTS]:
            reference = watch.get("reference") or watch.get("id")
            if not reference:
                continue
            name = " ".join(str(p) for p in (watch.get("brand"), watch.get("model")) if p)
            results.append(
                SearchResult(
                    symbol=str(reference),
                    name=name or str(reference),
                    type=AssetType.LUXURY_WATCH.value,
                    currency=watch.get("currency") or _DEFAULT_CURRENCY,
                    provider=self.name.value,
                )
            )
        return results


class WatchEstimateProvider(BaseProvider):
    """Offline heuristic used when no market quote is available."""

    name = ProviderName.WATCH_ESTIMATE
    asset_types = frozenset({AssetType.LUXURY_WATCH})

    def __init__(self, today: Callable[[], date] = _utc_today) -> None:
        self._today = today

    async def fetch_price(self, asset: Asset) -> PriceQuote | None:
        price = estimate_watch_value(asset.brand, asset.year, asset.condition, self._today())
        return PriceQuote(
            price=price,
            currency=_DEFAULT_CURRENCY,
            source=self.name.value,
            metadata={
                "method": "brand_age_condition",
                "low": round(price * 0.8),
                "high": round(price * 1.2),
            },
        )

