"""Tests for price_aggregator.providers.catalog."""

from price_aggregator.core.models import AssetType
from price_aggregator.providers.catalog import FallbackCatalog


class TestFallbackCatalog:
    def test_exact_symbol_ranked_first(self):
        results = FallbackCatalog().search("amd")
        assert results[0].symbol == "AMD"

    def test_name_substring(self):
        symbols = [r.symbol for r in FallbackCatalog().search("vanguard")]
        assert "VOO" in symbols
        assert "VTI" in symbols

    def test_type_filter_is_exact(self):
        results = FallbackCatalog().search("vanguard", AssetType.STOCK)
        assert results == []

    def test_crypto(self):
        results = FallbackCatalog().search("bitcoin", AssetType.CRYPTO)
        assert [(r.symbol, r.type, r.region) for r in results] == [("BTC", "CRYPTO", "Global")]

    def test_capped_at_ten(self):
        assert len(FallbackCatalog().search("a")) == 10

    def test_provider_label(self):
        assert FallbackCatalog().search("AAPL")[0].provider == "fallback_catalog"

    def test_blank_query(self):
        assert FallbackCatalog().search("   ") == []

    def test_no_match(self):
        assert FallbackCatalog().search("zzzzzz") == []

    def test_size(self):
        assert len(FallbackCatalog()) == 41
