"""Yahoo Finance quote provider — direct HTTP implementation.

Uses the unauthenticated ``/v8/finance/chart/`` endpoint for the latest
regular-market price and ``/v1/finance/search`` for symbol lookup.
"""

from __future__ import annotations

import logging
import urllib.parse
from typing import Any

from price_aggregator.core.models import Asset, AssetType, PriceQuote, ProviderName, SearchResult
from price_aggregator.providers.base import HttpProvider, parse_price

logger = logging.getLogger(__name__)

_BASE_URL = "https://query2.finance.yahoo.com"
_CHART_PATH = "/v8/finance/chart"
_SEARCH_PATH = "/v1/finance/search"
_DEFAULT_CURRENCY = "USD"
_MAX_SEARCH_RESULTS = 10


class YahooFinanceProvider(HttpProvider):
    """Fallback for equities and the only source for commodities."""

    name = ProviderName.YAHOO_FINANCE
    asset_types = frozenset(
        {
            AssetType.STOCK,
            AssetType.ETF,
            AssetType.BOND,
            AssetType.FUND,
            AssetType.COMMODITY,
        }
    )
    default_base_url = _BASE_URL

    async def fetch_price(self, asset: Asset) -> PriceQuote | None:
        if not asset.symbol:
            return None

        data = await self.http.get_json(
            f"{_CHART_PATH}/{urllib.parse.quote(asset.symbol, safe='')}",
            params={"interval": "1d", "range": "1d"},
        )

        meta = self._chart_meta(data, asset.symbol)
        if meta is None:
            return None

        price = parse_price(meta.get("regularMarketPrice"))
        if price is None:
            logger.warning("Yahoo Finance returned no market price for %s", asset.symbol)
            return None

        return PriceQuote(
            price=price,
            currency=meta.get("currency") or _DEFAULT_CURRENCY,
            source=self.name.value,
            metadata={
                "exchange": meta.get("exchangeName"),
                "previous_close": meta.get("chartPreviousClose"),
                "market_time": meta.get("regularMarketTime"),
            },
        )

    def _chart_meta(self, data: dict[str, Any], symbol: str) -> dict[str, Any] | None:
        chart = data.get("chart") or {}
        if chart.get("error"):
            err = chart["error"]
            logger.warning(
                "Yahoo Finance API error for %s: %s",
                symbol,
                err.get("description", err) if isinstance(err, dict) else err,
            )
            return None

        results = chart.get("result") or []
        if not results:
            logger.warning("Yahoo Finance returned empty chart for %s", symbol)
            return None
        return results[0].get("meta") or {}

    async def search(self, query: str) -> list[SearchResult]:
        data = await self.http.get_json(
            _SEARCH_PATH,
            params={"q": query, "quotesCount": _MAX_SEARCH_RESULTS, "newsCount": 0},
        )
        results: list[SearchResult] = []
        for quote in (data.get("quotes") or [])[:_MAX_SEARCH_RESULTS]:
            symbol = quote.get("symbol")
            if not symbol:
                continue
            results.append(
                SearchResult(
                    symbol=symbol,
                    name=quote.get("longname") or quote.get("shortname") or symbol,
                    type=quote.get("quoteType", "EQUITY"),
                    region=quote.get("exchDisp"),
                    provider=self.name.value,
                )
            )
        return results
