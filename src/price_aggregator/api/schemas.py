"""API-specific request/response schemas (Pydantic v2)."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from price_aggregator.core.models import (
    AssetUpdateResult,
    BatchUpdateReport,
    PricePrediction,
    PriceRecord,
    PriceStatistics,
    SearchResult,
)


# -- Error --


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    error: str
    detail: str | None = None


# -- Updates --


class BulkUpdateRequest(BaseModel):
    """Request body for POST /api/prices/update-bulk."""

    asset_ids: list[str] = Field(..., min_length=1, max_length=1000)


class BatchReportResponse(BaseModel):
    """Batch outcome; returned with 200 even when every asset failed."""

    succeeded: int
    failed: int
    total: int
    details: list[AssetUpdateResult]

    @classmethod
    def from_report(cls, report: BatchUpdateReport) -> BatchReportResponse:
        return cls(
            succeeded=report.succeeded,
            failed=report.failed,
            total=report.total,
            details=report.details,
        )


# -- Search --


class SearchResponse(BaseModel):
    query: str
    type: str | None = None
    results: list[SearchResult]


# -- History --


class PricePointResponse(BaseModel):
    price: float
    source: str
    recorded_at: datetime

    @classmethod
    def from_record(cls, record: PriceRecord) -> PricePointResponse:
        return cls(price=record.price, source=record.source, recorded_at=record.recorded_at)


class HistoryResponse(BaseModel):
    asset_id: str
    days: int
    items: list[PricePointResponse]


class StatisticsResponse(BaseModel):
    asset_id: str
    days: int
    statistics: PriceStatistics


# -- Predictions --


class PredictionListResponse(BaseModel):
    asset_id: str
    items: list[PricePrediction]


# -- Providers / Health --


class ProviderStatusResponse(BaseModel):
    name: str
    enabled: bool
    asset_types: list[str]
    min_interval_seconds: float


class ProviderListResponse(BaseModel):
    providers: list[ProviderStatusResponse]


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    status: str = "ok"
    version: str
    storage_ok: bool
    scheduler_running: bool
    enabled_providers: int
