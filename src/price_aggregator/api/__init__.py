"""price_aggregator.api — FastAPI surface over the aggregation service."""

from price_aggregator.api.app import create_app

__all__ = ["create_app"]
