"""Configuration loading, validation, and access."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, field_validator

from price_aggregator.core.exceptions import ConfigError

# Values shipped in example env files that must not count as credentials.
PLACEHOLDER_KEYS = frozenset(
    {"", "your_api_key_here", "changeme", "change_me", "xxx", "none", "null"}
)


def is_placeholder(value: str | None) -> bool:
    """True when a credential is missing or a known placeholder."""
    if value is None:
        return True
    return value.strip().lower() in PLACEHOLDER_KEYS


class ProviderConfig(BaseModel):
    """Access settings for a single third-party price provider."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    api_key: str | None = None
    base_url: str | None = None
    timeout: float = 10.0
    requests_per_second: float = 5.0
    min_interval_seconds: float = 0.0

    @field_validator("api_key", mode="before")
    @classmethod
    def api_key_as_str(cls, v: Any) -> str | None:
        # Env auto-casting can turn numeric keys into ints.
        if v is None:
            return None
        return str(v)

    @field_validator("timeout", "requests_per_second")
    @classmethod
    def positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator("min_interval_seconds")
    @classmethod
    def interval_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("min_interval_seconds must be >= 0")
        return v

    @property
    def has_credential(self) -> bool:
        return not is_placeholder(self.api_key)


class ProvidersConfig(BaseModel):
    """Per-provider settings. Alpha Vantage's free tier allows 5 calls/min."""

    model_config = ConfigDict(frozen=True)

    coingecko: ProviderConfig = ProviderConfig()
    binance: ProviderConfig = ProviderConfig()
    alpha_vantage: ProviderConfig = ProviderConfig(
        timeout=15.0, min_interval_seconds=12.0
    )
    yahoo_finance: ProviderConfig = ProviderConfig()
    watch_market: ProviderConfig = ProviderConfig()
    car_valuation: ProviderConfig = ProviderConfig()


class PricingConfig(BaseModel):
    """Refresh schedule and history retention."""

    model_config = ConfigDict(frozen=True)

    price_updates_enabled: bool = True
    refresh_interval_hours: float = 4.0
    cleanup_hour: int = 3
    history_retention_days: int = 365
    default_history_days: int = 30

    @field_validator("refresh_interval_hours")
    @classmethod
    def interval_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("refresh_interval_hours must be > 0")
        return v

    @field_validator("cleanup_hour")
    @classmethod
    def hour_of_day(cls, v: int) -> int:
        if not 0 <= v <= 23:
            raise ValueError("cleanup_hour must be between 0 and 23")
        return v

    @field_validator("history_retention_days", "default_history_days")
    @classmethod
    def days_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1 day")
        return v


class StorageConfig(BaseModel):
    """Storage backend configuration."""

    model_config = ConfigDict(frozen=True)

    sqlite_path: str = "./data/price_aggregator.db"


class PredictionConfig(BaseModel):
    """Optional LLM blending for price predictions (OpenAI-compatible API)."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    api_key: str | None = None
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    timeout_seconds: int = 30

    @field_validator("api_key", mode="before")
    @classmethod
    def api_key_as_str(cls, v: Any) -> str | None:
        if v is None:
            return None
        return str(v)


class APIConfig(BaseModel):
    """FastAPI server configuration."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = 8000
    api_key: str | None = None


class LoggingConfig(BaseModel):
    """Root log level for CLI and server processes."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def known_level(cls, v: str) -> str:
        upper = v.upper()
        if upper not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {v!r}")
        return upper


class AggregatorConfig(BaseModel):
    """Root configuration for the entire price-aggregator system."""

    model_config = ConfigDict(frozen=True)

    providers: ProvidersConfig = ProvidersConfig()
    pricing: PricingConfig = PricingConfig()
    storage: StorageConfig = StorageConfig()
    prediction: PredictionConfig = PredictionConfig()
    api: APIConfig = APIConfig()
    logging: LoggingConfig = LoggingConfig()


def load_config(
    config_path: str | None = None,
    env_prefix: str = "PRICE_AGGREGATOR_",
) -> AggregatorConfig:
    """Load configuration from environment + YAML file + defaults.

    Resolution order (highest priority first):
    1. Environment variables (PRICE_AGGREGATOR_PROVIDERS__BINANCE__ENABLED, etc.)
    2. YAML file at config_path
    3. Built-in defaults

    Nested keys use double-underscore in env vars:
        PRICE_AGGREGATOR_PRICING__HISTORY_RETENTION_DAYS=90
            ->  pricing.history_retention_days = 90
    """
    try:
        yaml_path = _resolve_config_path(config_path)
        base = AggregatorConfig().model_dump()
        if yaml_path is not None:
            base = _deep_merge(base, _load_yaml(yaml_path))

        merged = _merge_env_vars(base, env_prefix)
        return AggregatorConfig.model_validate(merged)
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(str(e), context={"source": "load_config"}) from e


def _resolve_config_path(explicit: str | None) -> Path | None:
    """Determine config file path."""
    if explicit is not None:
        p = Path(explicit)
        if not p.exists():
            raise ConfigError(
                f"Config file not found: {explicit}",
                context={"field": "config_path", "value": explicit},
            )
        return p

    env_path = os.environ.get("PRICE_AGGREGATOR_CONFIG")
    if env_path:
        p = Path(env_path)
        if not p.exists():
            raise ConfigError(
                f"Config file from PRICE_AGGREGATOR_CONFIG not found: {env_path}",
                context={"field": "PRICE_AGGREGATOR_CONFIG", "value": env_path},
            )
        return p

    default = Path("price-aggregator.yml")
    if default.exists():
        return default

    return None


def _load_yaml(path: Path) -> dict:
    """Load and parse YAML file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"YAML config must be a mapping, got {type(data).__name__}",
                context={"field": "config_file", "value": str(path)},
            )
        return data
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse YAML config: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively overlay override onto base; nested sections keep unset defaults."""
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _merge_env_vars(base: dict, prefix: str) -> dict:
    """Overlay environment variables onto base config dict.

    Double-underscore separates nesting levels.
    Values are auto-cast: "true"/"false" -> bool, numeric strings -> int/float.
    """
    result = dict(base)

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        remainder = key[len(prefix) :]
        parts = [p.lower() for p in remainder.split("__")]

        # Skip the CONFIG env var itself
        if parts == ["config"]:
            continue

        cast_value = _auto_cast(value)

        target = result
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            else:
                target[part] = dict(target[part])
            target = target[part]
        target[parts[-1]] = cast_value

    return result


def _auto_cast(value: str) -> str | int | float | bool:
    """Auto-cast string values from environment variables."""
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value
