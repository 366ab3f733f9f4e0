"""Tests for price_aggregator.core.config."""

import os

import pytest
from pydantic import ValidationError

from price_aggregator.core.config import (
    AggregatorConfig,
    LoggingConfig,
    PricingConfig,
    ProviderConfig,
    _auto_cast,
    _deep_merge,
    _merge_env_vars,
    is_placeholder,
    load_config,
)
from price_aggregator.core.exceptions import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate from the developer's environment and any local config file."""
    for key in list(os.environ):
        if key.startswith("PRICE_AGGREGATOR_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


class TestPlaceholders:
    @pytest.mark.parametrize("value", [None, "", "  ", "your_api_key_here", "CHANGEME"])
    def test_placeholder(self, value):
        assert is_placeholder(value)

    def test_real_key(self):
        assert not is_placeholder("A1B2C3")


class TestProviderConfig:
    def test_defaults(self):
        c = ProviderConfig()
        assert c.enabled
        assert c.min_interval_seconds == 0.0
        assert not c.has_credential

    def test_numeric_api_key_cast_to_str(self):
        assert ProviderConfig(api_key=12345).api_key == "12345"

    def test_negative_interval_rejected(self):
        with pytest.raises(ValidationError, match="min_interval_seconds"):
            ProviderConfig(min_interval_seconds=-1)

    def test_alpha_vantage_throttled_by_default(self):
        assert AggregatorConfig().providers.alpha_vantage.min_interval_seconds == 12.0


class TestPricingConfig:
    def test_defaults(self):
        c = PricingConfig()
        assert c.refresh_interval_hours == 4.0
        assert c.cleanup_hour == 3
        assert c.history_retention_days == 365
        assert c.default_history_days == 30

    def test_cleanup_hour_range(self):
        with pytest.raises(ValidationError, match="between 0 and 23"):
            PricingConfig(cleanup_hour=24)

    def test_retention_positive(self):
        with pytest.raises(ValidationError, match=">= 1 day"):
            PricingConfig(history_retention_days=0)


class TestLoggingConfig:
    def test_level_normalized(self):
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_unknown_level(self):
        with pytest.raises(ValidationError, match="unknown log level"):
            LoggingConfig(level="chatty")


class TestLoadConfig:
    def test_defaults(self):
        config = load_config()
        assert config.storage.sqlite_path == "./data/price_aggregator.db"
        assert config.pricing.price_updates_enabled

    def test_yaml_loading(self, tmp_path):
        yaml_file = tmp_path / "config.yml"
        yaml_file.write_text(
            "providers:\n"
            "  alpha_vantage:\n"
            "    api_key: abc123\n"
            "pricing:\n"
            "  refresh_interval_hours: 2\n"
        )
        config = load_config(config_path=str(yaml_file))
        assert config.providers.alpha_vantage.api_key == "abc123"
        assert config.providers.alpha_vantage.min_interval_seconds == 12.0
        assert config.pricing.refresh_interval_hours == 2

    def test_env_key_keeps_alpha_vantage_throttle(self, monkeypatch):
        monkeypatch.setenv("PRICE_AGGREGATOR_PROVIDERS__ALPHA_VANTAGE__API_KEY", "realkey")
        av = load_config().providers.alpha_vantage
        assert av.api_key == "realkey"
        assert av.min_interval_seconds == 12.0
        assert av.timeout == 15.0

    def test_yaml_override_keeps_other_provider_fields(self, tmp_path):
        yaml_file = tmp_path / "config.yml"
        yaml_file.write_text("providers:\n  alpha_vantage:\n    timeout: 20\n")
        av = load_config(config_path=str(yaml_file)).providers.alpha_vantage
        assert av.timeout == 20
        assert av.min_interval_seconds == 12.0

    def test_default_file_in_cwd(self, tmp_path):
        (tmp_path / "price-aggregator.yml").write_text("storage:\n  sqlite_path: x.db\n")
        assert load_config().storage.sqlite_path == "x.db"

    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        yaml_file = tmp_path / "config.yml"
        yaml_file.write_text("pricing:\n  history_retention_days: 100\n")
        monkeypatch.setenv("PRICE_AGGREGATOR_PRICING__HISTORY_RETENTION_DAYS", "90")
        config = load_config(config_path=str(yaml_file))
        assert config.pricing.history_retention_days == 90

    def test_env_disables_provider(self, monkeypatch):
        monkeypatch.setenv("PRICE_AGGREGATOR_PROVIDERS__BINANCE__ENABLED", "false")
        assert load_config().providers.binance.enabled is False

    def test_config_path_from_env(self, tmp_path, monkeypatch):
        yaml_file = tmp_path / "other.yml"
        yaml_file.write_text("api:\n  port: 9000\n")
        monkeypatch.setenv("PRICE_AGGREGATOR_CONFIG", str(yaml_file))
        assert load_config().api.port == 9000

    def test_missing_file(self):
        with pytest.raises(ConfigError, match="not found"):
            load_config(config_path="/nonexistent/config.yml")

    def test_non_mapping_yaml(self, tmp_path):
        yaml_file = tmp_path / "config.yml"
        yaml_file.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="must be a mapping"):
            load_config(config_path=str(yaml_file))

    def test_validation_error_wrapped(self, monkeypatch):
        monkeypatch.setenv("PRICE_AGGREGATOR_PRICING__CLEANUP_HOUR", "30")
        with pytest.raises(ConfigError):
            load_config()


class TestEnvHelpers:
    @pytest.mark.parametrize(
        "raw,expected",
        [("true", True), ("FALSE", False), ("42", 42), ("1.5", 1.5), ("abc", "abc")],
    )
    def test_auto_cast(self, raw, expected):
        assert _auto_cast(raw) == expected

    def test_merge_nested(self, monkeypatch):
        monkeypatch.setenv("TEST_PREFIX_A__B", "1")
        assert _merge_env_vars({"a": {"c": 2}}, "TEST_PREFIX_") == {"a": {"b": 1, "c": 2}}

    def test_deep_merge_keeps_siblings(self):
        base = {"a": {"b": 1, "c": 2}, "d": 3}
        assert _deep_merge(base, {"a": {"b": 5}}) == {"a": {"b": 5, "c": 2}, "d": 3}
        assert base["a"]["b"] == 1
