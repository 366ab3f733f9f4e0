"""Alpha Vantage equity quote provider (primary source for stocks/ETFs/bonds/funds).

The free tier allows 5 requests per minute, so the resolver throttles this
provider to one call per ``min_interval_seconds`` (12 s by default). Alpha
Vantage reports throttling and bad symbols inside a 200 response:

    {"Note": "..."}            — call frequency exceeded
    {"Information": "..."}     — daily quota / premium endpoint
    {"Error Message": "..."}   — invalid symbol or function
"""

from __future__ import annotations

import logging
from typing import Any

from price_aggregator.core.models import Asset, AssetType, PriceQuote, ProviderName, SearchResult
from price_aggregator.providers.base import HttpProvider, parse_price

logger = logging.getLogger(__name__)

_BASE_URL = "https://www.alphavantage.co"
_QUERY_PATH = "/query"
_QUOTE_CURRENCY = "USD"
_ERROR_KEYS = ("Note", "Information", "Error Message")


class AlphaVantageProvider(HttpProvider):
    """``GLOBAL_QUOTE`` prices and ``SYMBOL_SEARCH`` lookups. Requires an API key."""

    name = ProviderName.ALPHA_VANTAGE
    asset_types = frozenset(
        {AssetType.STOCK, AssetType.ETF, AssetType.BOND, AssetType.FUND}
    )
    default_base_url = _BASE_URL
    requires_api_key = True

    def _error_message(self, data: dict[str, Any]) -> str | None:
        for key in _ERROR_KEYS:
            if key in data:
                return f"{key}: {data[key]}"
        return None

    async def fetch_price(self, asset: Asset) -> PriceQuote | None:
        if not asset.symbol:
            return None

        data = await self.http.get_json(
            _QUERY_PATH,
            params={
                "function": "GLOBAL_QUOTE",
                "symbol": asset.symbol,
                "apikey": self.api_key,
            },
        )

        error = self._error_message(data)
        if error is not None:
            logger.warning("Alpha Vantage refused quote for %s (%s)", asset.symbol, error)
            return None

        quote = data.get("Global Quote") or {}
        price = parse_price(quote.get("05. price"))
        if price is None:
            logger.warning("Alpha Vantage returned no price for %s", asset.symbol)
            return None

        return PriceQuote(
            price=price,
            currency=_QUOTE_CURRENCY,
            source=self.name.value,
            metadata={
                "open": parse_price(quote.get("02. open")),
                "high": parse_price(quote.get("03. high")),
                "low": parse_price(quote.get("04. low")),
                "volume": quote.get("06. volume"),
                "latest_trading_day": quote.get("07. latest trading day"),
                "change_percent": quote.get("10. change percent"),
            },
        )

    async def search(self, query: str) -> list[SearchResult]:
        data = await self.http.get_json(
            _QUERY_PATH,
            params={"function": "SYMBOL_SEARCH", "keywords": query, "apikey": self.api_key},
        )

        error = self._error_message(data)
        if error is not None:
            logger.warning("Alpha Vantage refused search %r (%s)", query, error)
            return []

        return [
            SearchResult(
                symbol=match["1. symbol"],
                name=match.get("2. name", ""),
                type=match.get("3. type", "Equity"),
                region=match.get("4. region"),
                currency=match.get("8. currency"),
                provider=self.name.value,
            )
            for match in data.get("bestMatches") or []
            if match.get("1. symbol")
        ]
