"""Embedded symbol catalog used for search when no provider answers."""

from __future__ import annotations

import logging
from typing import NamedTuple

from price_aggregator.core.models import AssetType, ProviderName, SearchResult

logger = logging.getLogger(__name__)

_MAX_RESULTS = 10


class CatalogEntry(NamedTuple):
    symbol: str
    name: str
    type: AssetType
    region: str
    currency: str


def _us(symbol: str, name: str, asset_type: AssetType = AssetType.STOCK) -> CatalogEntry:
    return CatalogEntry(symbol, name, asset_type, "United States", "USD")


def _fr(symbol: str, name: str) -> CatalogEntry:
    return CatalogEntry(symbol, name, AssetType.STOCK, "France", "EUR")


def _coin(symbol: str, name: str) -> CatalogEntry:
    return CatalogEntry(symbol, name, AssetType.CRYPTO, "Global", "USD")


_CATALOG: tuple[CatalogEntry, ...] = (
    # US equities
    _us("AAPL", "Apple Inc"),
    _us("MSFT", "Microsoft Corporation"),
    _us("GOOGL", "Alphabet Inc Class A"),
    _us("GOOG", "Alphabet Inc Class C"),
    _us("AMZN", "Amazon.com Inc"),
    _us("TSLA", "Tesla Inc"),
    _us("META", "Meta Platforms Inc"),
    _us("NVDA", "NVIDIA Corporation"),
    _us("AMD", "Advanced Micro Devices Inc"),
    _us("INTC", "Intel Corporation"),
    _us("NFLX", "Netflix Inc"),
    _us("PYPL", "PayPal Holdings Inc"),
    _us("ZOOM", "Zoom Video Communications Inc"),
    _us("PTON", "Peloton Interactive Inc"),
    _us("SNAP", "Snap Inc"),
    _us("AVGO", "Broadcom Inc"),
    _us("CRM", "Salesforce Inc"),
    _us("ADBE", "Adobe Inc"),
    _us("ORCL", "Oracle Corporation"),
    _us("IBM", "International Business Machines Corp"),
    # Euronext Paris
    _fr("MC.PA", "LVMH Moët Hennessy Louis Vuitton"),
    _fr("SAP.PA", "Safran SA"),
    _fr("TTE.PA", "TotalEnergies SE"),
    _fr("BNP.PA", "BNP Paribas SA"),
    _fr("SAN.PA", "Sanofi SA"),
    # ETFs
    _us("VOO", "Vanguard S&P 500 ETF", AssetType.ETF),
    _us("VTI", "Vanguard Total Stock Market ETF", AssetType.ETF),
    _us("QQQ", "Invesco QQQ Trust ETF", AssetType.ETF),
    _us("SPY", "SPDR S&P 500 ETF Trust", AssetType.ETF),
    _us("VXUS", "Vanguard Total International Stock ETF", AssetType.ETF),
    _us("BND", "Vanguard Total Bond Market ETF", AssetType.ETF),
    _us("ARKK", "ARK Innovation ETF", AssetType.ETF),
    _us("SCHD", "Schwab US Dividend Equity ETF", AssetType.ETF),
    _us("IVV", "iShares Core S&P 500 ETF", AssetType.ETF),
    _us("VEA", "Vanguard Developed Markets ETF", AssetType.ETF),
    # Crypto
    _coin("BTC", "Bitcoin"),
    _coin("ETH", "Ethereum"),
    _coin("ADA", "Cardano"),
    _coin("DOT", "Polkadot"),
    _coin("SOL", "Solana"),
    _coin("AVAX", "Avalanche"),
)


class FallbackCatalog:
    """Offline search over a fixed list of popular symbols.

    Ranking: exact symbol match, then symbol prefix, then name prefix,
    then alphabetical by name. At most 10 results.
    """

    name = ProviderName.FALLBACK_CATALOG

    def __init__(self, entries: tuple[CatalogEntry, ...] = _CATALOG) -> None:
        self._entries = entries

    def __len__(self) -> int:
        return len(self._entries)

    def search(self, query: str, type_filter: AssetType | None = None) -> list[SearchResult]:
        q = query.strip().lower()
        if not q:
            return []

        candidates = [
            e
            for e in self._entries
            if (type_filter is None or e.type == type_filter)
            and (q in e.symbol.lower() or q in e.name.lower())
        ]

        def rank(entry: CatalogEntry) -> tuple[bool, bool, bool, str]:
            symbol, name = entry.symbol.lower(), entry.name.lower()
            return (symbol != q, not symbol.startswith(q), not name.startswith(q), name)

        candidates.sort(key=rank)
        logger.debug(
            "Catalog search %r (type=%s): %d matches", query, type_filter, len(candidates)
        )
        return [
            SearchResult(
                symbol=e.symbol,
                name=e.name,
                type=e.type.value,
                region=e.region,
                currency=e.currency,
                provider=self.name.value,
            )
            for e in candidates[:_MAX_RESULTS]
        ]
