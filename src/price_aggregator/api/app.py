"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from price_aggregator.api.deps import AppState, api_key_middleware
from price_aggregator.api.routes import router
from price_aggregator.core.config import AggregatorConfig, load_config
from price_aggregator.core.exceptions import (
    AssetNotFoundError,
    ConfigError,
    MissingSymbolError,
    PriceAggregatorError,
    ResolutionError,
    StorageError,
)
from price_aggregator.core.models import ProviderName
from price_aggregator.pricing.scheduler import PriceScheduler
from price_aggregator.providers.base import PriceProvider
from price_aggregator.service import build_service
from price_aggregator.storage.store import create_store

_STATUS_MAP: dict[type[PriceAggregatorError], int] = {
    ConfigError: 400,
    AssetNotFoundError: 404,
    MissingSymbolError: 422,
    ResolutionError: 502,
    StorageError: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open storage, wire the service, start the scheduler; undo on shutdown."""
    config: AggregatorConfig = app.state._pending_config or load_config()
    store = await create_store(config.storage)
    service = build_service(config, store, providers=app.state._pending_providers)

    scheduler = None
    if app.state._start_scheduler and config.pricing.price_updates_enabled:
        scheduler = PriceScheduler(service.orchestrator, config.pricing)
        scheduler.start()

    app.state.app_state = AppState(
        config=config, store=store, service=service, scheduler=scheduler
    )

    yield

    if scheduler is not None:
        await scheduler.shutdown()
    await service.close()
    await store.close()


def create_app(
    config: AggregatorConfig | None = None,
    *,
    providers: dict[ProviderName, PriceProvider] | None = None,
    start_scheduler: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``providers`` replaces the configured provider set (tests, embedding).
    """
    import price_aggregator

    app = FastAPI(
        title="Price Aggregator API",
        description="Multi-provider price resolution and portfolio valuation",
        version=price_aggregator.__version__,
        lifespan=lifespan,
    )

    # Stash construction arguments so lifespan can retrieve them
    app.state._pending_config = config
    app.state._pending_providers = providers
    app.state._start_scheduler = start_scheduler

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if config and config.api.api_key:
        app.middleware("http")(api_key_middleware)

    app.include_router(router, prefix="/api")

    @app.exception_handler(PriceAggregatorError)
    async def aggregator_exception_handler(request: Request, exc: PriceAggregatorError):
        status = _STATUS_MAP.get(type(exc), 500)
        return JSONResponse(
            status_code=status,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    return app
