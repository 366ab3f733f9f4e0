"""Dependency injection for FastAPI routes."""

from __future__ import annotations

import secrets
from dataclasses import dataclass

from fastapi import Request
from fastapi.responses import JSONResponse

from price_aggregator.core.config import AggregatorConfig
from price_aggregator.pricing.scheduler import PriceScheduler
from price_aggregator.service import PriceAggregationService
from price_aggregator.storage.store import SqliteStore


@dataclass
class AppState:
    """Shared application state, attached to app.state during lifespan."""

    config: AggregatorConfig
    store: SqliteStore
    service: PriceAggregationService
    scheduler: PriceScheduler | None = None


def get_app_state(request: Request) -> AppState:
    """Dependency: retrieve AppState from the request."""
    return request.app.state.app_state


def get_config(request: Request) -> AggregatorConfig:
    return request.app.state.app_state.config


def get_store(request: Request) -> SqliteStore:
    return request.app.state.app_state.store


def get_service(request: Request) -> PriceAggregationService:
    """Dependency: retrieve the aggregation facade."""
    return request.app.state.app_state.service


EXEMPT_PATHS = frozenset({"/api/health", "/docs", "/openapi.json"})


async def api_key_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Reject requests without the configured X-API-Key (health and docs exempt)."""
    expected = request.app.state.app_state.config.api.api_key
    if not expected or request.url.path in EXEMPT_PATHS:
        return await call_next(request)

    provided = request.headers.get("X-API-Key") or ""
    if not secrets.compare_digest(provided, expected):
        return JSONResponse(
            status_code=401,
            content={"error": "Unauthorized", "detail": "Invalid or missing API key"},
        )
    return await call_next(request)
