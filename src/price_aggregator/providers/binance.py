"""Binance spot ticker provider (crypto fallback)."""

from __future__ import annotations

import logging

from price_aggregator.core.models import Asset, AssetType, PriceQuote, ProviderName
from price_aggregator.providers.base import HttpProvider, parse_price

logger = logging.getLogger(__name__)

_BASE_URL = "https://api.binance.com/api/v3"


class BinanceProvider(HttpProvider):
    """Public ``/ticker/price`` endpoint; no credential, toggled by ``enabled``."""

    name = ProviderName.BINANCE
    asset_types = frozenset({AssetType.CRYPTO})
    default_base_url = _BASE_URL

    @staticmethod
    def trading_pair(symbol: str, currency: str) -> str:
        return f"{symbol.upper()}{currency.upper()}"

    async def fetch_price(self, asset: Asset) -> PriceQuote | None:
        if not asset.symbol:
            return None

        pair = self.trading_pair(asset.symbol, asset.currency)
        data = await self.http.get_json("/ticker/price", params={"symbol": pair})

        if "code" in data and "price" not in data:
            logger.warning("Binance error for %s: %s", pair, data.get("msg"))
            return None

        price = parse_price(data.get("price"))
        if price is None:
            logger.warning("Binance returned no usable price for %s", pair)
            return None

        return PriceQuote(
            price=price,
            currency=asset.currency,
            source=self.name.value,
            metadata={"pair": pair},
        )
