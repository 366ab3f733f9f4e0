"""CoinGecko crypto price provider (primary source for crypto)."""

from __future__ import annotations

import logging

from price_aggregator.core.config import ProviderConfig
from price_aggregator.core.models import (
    Asset,
    AssetType,
    PriceQuote,
    ProviderName,
    SearchResult,
)
from price_aggregator.providers.base import HttpProvider, parse_price
from price_aggregator.providers.http import ProviderHttpClient

logger = logging.getLogger(__name__)

_BASE_URL = "https://api.coingecko.com/api/v3"

# Ticker → CoinGecko coin id for the most common coins.
_DEFAULT_COIN_IDS: dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "USDT": "tether",
    "BNB": "binancecoin",
    "SOL": "solana",
    "XRP": "ripple",
    "USDC": "usd-coin",
    "ADA": "cardano",
    "DOGE": "dogecoin",
    "TRX": "tron",
    "AVAX": "avalanche-2",
    "DOT": "polkadot",
    "MATIC": "matic-network",
    "LTC": "litecoin",
    "LINK": "chainlink",
}

_MAX_SEARCH_RESULTS = 10


class CoinGeckoProvider(HttpProvider):
    """Quotes crypto assets in the asset's currency via ``/simple/price``.

    The demo API key is optional; without one the public tier is used.
    """

    name = ProviderName.COINGECKO
    asset_types = frozenset({AssetType.CRYPTO})
    default_base_url = _BASE_URL

    def __init__(
        self,
        config: ProviderConfig | None = None,
        http: ProviderHttpClient | None = None,
    ) -> None:
        super().__init__(config, http)
        self._coin_ids = dict(_DEFAULT_COIN_IDS)

    def _default_headers(self) -> dict[str, str]:
        if self.api_key:
            return {"x-cg-demo-api-key": self.api_key}
        return {}

    def coin_id(self, symbol: str) -> str:
        """CoinGecko id for a ticker; unknown tickers fall back to lowercase."""
        return self._coin_ids.get(symbol.upper(), symbol.lower())

    def add_coin_mapping(self, symbol: str, coin_id: str) -> None:
        self._coin_ids[symbol.upper()] = coin_id

    async def fetch_price(self, asset: Asset) -> PriceQuote | None:
        if not asset.symbol:
            return None

        coin_id = self.coin_id(asset.symbol)
        currency = asset.currency.lower()
        data = await self.http.get_json(
            "/simple/price",
            params={"ids": coin_id, "vs_currencies": currency},
        )

        price = parse_price((data.get(coin_id) or {}).get(currency))
        if price is None:
            logger.warning(
                "CoinGecko returned no %s price for %s (%s)",
                currency, asset.symbol, coin_id,
            )
            return None

        return PriceQuote(
            price=price,
            currency=currency,
            source=self.name.value,
            metadata={"coin_id": coin_id},
        )

    async def search(self, query: str) -> list[SearchResult]:
        data = await self.http.get_json("/search", params={"query": query})
        coins = data.get("coins") or []
        return [
            SearchResult(
                symbol=str(coin.get("symbol", "")).upper(),
                name=coin.get("name", ""),
                type=AssetType.CRYPTO.value,
                region="Global",
                provider=self.name.value,
            )
            for coin in coins[:_MAX_SEARCH_RESULTS]
            if coin.get("symbol")
        ]
