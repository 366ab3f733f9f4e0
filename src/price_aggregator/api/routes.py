"""FastAPI route definitions for the price aggregation API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

import price_aggregator
from price_aggregator.api.deps import (
    AppState,
    get_app_state,
    get_config,
    get_service,
    get_store,
)
from price_aggregator.api.schemas import (
    BatchReportResponse,
    BulkUpdateRequest,
    HealthResponse,
    HistoryResponse,
    PredictionListResponse,
    PricePointResponse,
    ProviderListResponse,
    ProviderStatusResponse,
    SearchResponse,
    StatisticsResponse,
)
from price_aggregator.core.config import AggregatorConfig
from price_aggregator.core.models import (
    AssetType,
    AssetUpdateResult,
    PredictionTimeframe,
    PricePrediction,
)
from price_aggregator.service import PriceAggregationService
from price_aggregator.storage.store import SqliteStore

router = APIRouter()


# -- Health --


@router.get("/health", response_model=HealthResponse)
async def health_check(
    state: AppState = Depends(get_app_state),
    store: SqliteStore = Depends(get_store),
):
    """Liveness plus storage, scheduler and provider status."""
    status = state.service.provider_status()
    return HealthResponse(
        status="ok",
        version=price_aggregator.__version__,
        storage_ok=await store.health_check(),
        scheduler_running=state.scheduler is not None and state.scheduler.running,
        enabled_providers=sum(status.values()),
    )


@router.get("/providers", response_model=ProviderListResponse)
async def list_providers(service: PriceAggregationService = Depends(get_service)):
    """Configured providers and whether each is enabled."""
    return ProviderListResponse(
        providers=[
            ProviderStatusResponse(
                name=name.value,
                enabled=provider.is_enabled(),
                asset_types=sorted(t.value for t in provider.asset_types),
                min_interval_seconds=provider.min_interval,
            )
            for name, provider in service.providers.items()
        ]
    )


# -- Price updates --


@router.post("/prices/update/{asset_id}", response_model=AssetUpdateResult)
async def update_asset_price(
    asset_id: str,
    service: PriceAggregationService = Depends(get_service),
):
    """Refresh one asset. Failures are reported in the body, not the status."""
    return await service.update_asset_price(asset_id)


@router.post("/prices/update-bulk", response_model=BatchReportResponse)
async def update_assets_prices(
    body: BulkUpdateRequest,
    service: PriceAggregationService = Depends(get_service),
):
    """Refresh the listed assets sequentially."""
    report = await service.update_assets_prices(body.asset_ids)
    return BatchReportResponse.from_report(report)


@router.post("/prices/update-all", response_model=BatchReportResponse)
async def update_all_assets(service: PriceAggregationService = Depends(get_service)):
    """Refresh every active trackable asset."""
    report = await service.update_all_assets()
    return BatchReportResponse.from_report(report)


# -- Search --


@router.get("/search", response_model=SearchResponse)
async def search_assets(
    q: str = Query(..., min_length=1, description="Symbol or name fragment"),
    type: AssetType | None = Query(None, description="Restrict to an asset type"),
    service: PriceAggregationService = Depends(get_service),
):
    """Search providers, falling back to the built-in catalog."""
    results = await service.search_asset(q, type)
    return SearchResponse(query=q, type=type.value if type else None, results=results)


# -- History --


@router.get("/history/{asset_id}", response_model=HistoryResponse)
async def price_history(
    asset_id: str,
    days: int | None = Query(None, ge=1, le=3650),
    service: PriceAggregationService = Depends(get_service),
    config: AggregatorConfig = Depends(get_config),
):
    """Price points for the lookback window, oldest first."""
    window = days if days is not None else config.pricing.default_history_days
    records = await service.get_price_history(asset_id, window)
    return HistoryResponse(
        asset_id=asset_id,
        days=window,
        items=[PricePointResponse.from_record(r) for r in records],
    )


@router.get("/statistics/{asset_id}", response_model=StatisticsResponse)
async def price_statistics(
    asset_id: str,
    days: int | None = Query(None, ge=1, le=3650),
    service: PriceAggregationService = Depends(get_service),
    config: AggregatorConfig = Depends(get_config),
):
    """Min/max/avg/change over the lookback window."""
    window = days if days is not None else config.pricing.default_history_days
    stats = await service.get_price_statistics(asset_id, window)
    if stats is None:
        raise HTTPException(status_code=404, detail="No price history")
    return StatisticsResponse(asset_id=asset_id, days=window, statistics=stats)


# -- Predictions --


@router.get("/predictions/{asset_id}", response_model=PricePrediction)
async def price_prediction(
    asset_id: str,
    timeframe: PredictionTimeframe = Query(PredictionTimeframe.ONE_WEEK),
    service: PriceAggregationService = Depends(get_service),
):
    """Heuristic price prediction for the requested horizon."""
    prediction = await service.predict_price(asset_id, timeframe)
    if prediction is None:
        raise HTTPException(status_code=404, detail="No prediction available")
    return prediction


@router.get("/predictions/{asset_id}/active", response_model=PredictionListResponse)
async def active_predictions(
    asset_id: str,
    timeframe: PredictionTimeframe | None = Query(None),
    service: PriceAggregationService = Depends(get_service),
):
    """Stored predictions that have not expired, newest first."""
    items = await service.get_active_predictions(asset_id, timeframe)
    return PredictionListResponse(asset_id=asset_id, items=items)
