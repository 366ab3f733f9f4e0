"""Pydantic data models — the system's type contracts."""

from __future__ import annotations

from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# --- Type Aliases ---

AssetId = str
Symbol = str

# --- Enumerations ---


class AssetType(StrEnum):
    """Closed set of asset classes a portfolio can hold."""

    STOCK = "STOCK"
    ETF = "ETF"
    BOND = "BOND"
    CRYPTO = "CRYPTO"
    COMMODITY = "COMMODITY"
    FUND = "FUND"
    SCPI = "SCPI"
    REAL_ESTATE = "REAL_ESTATE"
    CASH = "CASH"
    LUXURY_WATCH = "LUXURY_WATCH"
    COLLECTOR_CAR = "COLLECTOR_CAR"
    ARTWORK = "ARTWORK"
    WINE = "WINE"
    JEWELRY = "JEWELRY"
    COLLECTIBLE = "COLLECTIBLE"
    OTHER = "OTHER"


# Types eligible for automatic price refresh.
TRACKABLE_TYPES: frozenset[AssetType] = frozenset(
    {
        AssetType.STOCK,
        AssetType.ETF,
        AssetType.BOND,
        AssetType.CRYPTO,
        AssetType.COMMODITY,
        AssetType.FUND,
        AssetType.LUXURY_WATCH,
        AssetType.COLLECTOR_CAR,
    }
)

# Quoted by market-data providers; updates need a ticker symbol.
SYMBOL_TYPES: frozenset[AssetType] = frozenset(
    {
        AssetType.STOCK,
        AssetType.ETF,
        AssetType.BOND,
        AssetType.CRYPTO,
        AssetType.COMMODITY,
        AssetType.FUND,
    }
)

# Valued from brand/model/year/condition instead of a ticker symbol.
COLLECTIBLE_TYPES: frozenset[AssetType] = frozenset(
    {AssetType.LUXURY_WATCH, AssetType.COLLECTOR_CAR}
)


class ProviderName(StrEnum):
    """Identifiers for price sources, recorded as `source` on quotes."""

    COINGECKO = "coingecko"
    BINANCE = "binance"
    ALPHA_VANTAGE = "alpha_vantage"
    YAHOO_FINANCE = "yahoo_finance"
    WATCH_MARKET = "watch_market"
    WATCH_ESTIMATE = "watch_estimate"
    COLLECTOR_CAR = "collector_car"
    CAR_VALUATION = "car_valuation"
    CAR_DEPRECIATION = "car_depreciation"
    FALLBACK_CATALOG = "fallback_catalog"


class PredictionTimeframe(StrEnum):
    """Horizons supported by the prediction enrichment."""

    ONE_DAY = "1d"
    ONE_WEEK = "7d"
    ONE_MONTH = "30d"
    ONE_QUARTER = "90d"

    @property
    def days(self) -> int:
        return int(self.value.rstrip("d"))


# --- Asset Models ---


class Asset(BaseModel):
    """A portfolio holding as seen by the aggregation core.

    The asset-management collaborator owns creation and deletion; this core
    only rewrites the cached valuation fields.
    """

    model_config = ConfigDict(frozen=True)

    id: AssetId
    name: str = ""
    type: AssetType
    symbol: Symbol | None = None
    isin: str | None = None
    quantity: float = 0.0
    purchase_price: float = 0.0
    currency: str = "EUR"

    # Collectible attributes
    brand: str | None = None
    model: str | None = None
    year: int | None = None
    condition: str | None = None
    mileage: int | None = None

    is_active: bool = True

    # Cached valuation
    current_price: float | None = None
    total_value: float | None = None
    total_gain: float | None = None
    total_gain_percent: float | None = None
    last_price_update: datetime | None = None

    @field_validator("symbol", "brand", "model", "condition")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("currency")
    @classmethod
    def currency_upper(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("quantity", "purchase_price")
    @classmethod
    def non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"must be >= 0, got {v}")
        return v

    @property
    def is_collectible(self) -> bool:
        return self.type in COLLECTIBLE_TYPES

    @property
    def requires_symbol(self) -> bool:
        return self.type in SYMBOL_TYPES

    @property
    def cost_basis(self) -> float:
        return self.purchase_price * self.quantity

    def age(self, today: date | None = None) -> int | None:
        """Age in whole years from `year`, or None when unknown."""
        if self.year is None:
            return None
        today = today or datetime.now(UTC).date()
        return today.year - self.year


class ValuationUpdate(BaseModel):
    """Recomputed valuation fields written back to an asset."""

    model_config = ConfigDict(frozen=True)

    current_price: float
    total_value: float
    total_gain: float
    total_gain_percent: float
    last_price_update: datetime


# --- Price Models ---


class PriceQuote(BaseModel):
    """A single price observation returned by a provider.

    Lives only for the duration of one resolution call. `price` is in the
    provider's native `currency`.
    """

    model_config = ConfigDict(frozen=True)

    price: float
    currency: str
    source: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("price")
    @classmethod
    def price_positive(cls, v: float) -> float:
        if not v > 0:
            raise ValueError(f"price must be > 0, got {v}")
        return v

    @field_validator("currency")
    @classmethod
    def currency_upper(cls, v: str) -> str:
        return v.strip().upper()


class PriceRecord(BaseModel):
    """A persisted point of an asset's price time series."""

    model_config = ConfigDict(frozen=True)

    asset_id: AssetId
    price: float
    source: str
    recorded_at: datetime


class PriceStatistics(BaseModel):
    """Aggregates over a lookback window of price records."""

    model_config = ConfigDict(frozen=True)

    current: float
    min: float
    max: float
    avg: float
    change_percent: float
    count: int


# --- Batch Models ---


class AssetUpdateResult(BaseModel):
    """Outcome of updating one asset."""

    model_config = ConfigDict(frozen=True)

    asset_id: AssetId
    success: bool
    price: float | None = None
    source: str | None = None
    error: str | None = None


class BatchUpdateReport(BaseModel):
    """Aggregated outcome of a batch update. Returned, never persisted."""

    succeeded: int = 0
    failed: int = 0
    details: list[AssetUpdateResult] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return self.succeeded + self.failed

    def add(self, result: AssetUpdateResult) -> None:
        self.details.append(result)
        if result.success:
            self.succeeded += 1
        else:
            self.failed += 1


# --- Search Models ---


class SearchResult(BaseModel):
    """A symbol match from a provider or the offline catalog."""

    model_config = ConfigDict(frozen=True)

    symbol: Symbol
    name: str
    type: str
    region: str | None = None
    currency: str | None = None
    provider: str


# --- Prediction Models ---


class PricePrediction(BaseModel):
    """Heuristic (optionally LLM-blended) price estimate for a horizon."""

    model_config = ConfigDict(frozen=True)

    asset_id: AssetId
    predicted_price: float
    confidence: float
    timeframe: PredictionTimeframe
    algorithm: str
    created_at: datetime
    expires_at: datetime
    factors: dict[str, Any] = Field(default_factory=dict)

    @field_validator("confidence")
    @classmethod
    def confidence_range(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {v}")
        return v
