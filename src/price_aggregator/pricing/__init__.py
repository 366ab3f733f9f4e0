"""price_aggregator.pricing — Resolution, valuation, history, batches, search."""

from price_aggregator.pricing.history import HistoryRecorder, compute_statistics
from price_aggregator.pricing.orchestrator import PriceUpdateOrchestrator
from price_aggregator.pricing.prediction import LLMPriceEstimator, PredictionService
from price_aggregator.pricing.rate_limit import MinIntervalLimiter, RateLimiterRegistry
from price_aggregator.pricing.resolver import PriceResolver, provider_chain
from price_aggregator.pricing.scheduler import PriceScheduler
from price_aggregator.pricing.search import SearchAggregator
from price_aggregator.pricing.valuation import ValuationUpdater, compute_valuation

__all__ = [
    "MinIntervalLimiter",
    "RateLimiterRegistry",
    "PriceResolver",
    "provider_chain",
    "ValuationUpdater",
    "compute_valuation",
    "HistoryRecorder",
    "compute_statistics",
    "PriceUpdateOrchestrator",
    "PriceScheduler",
    "SearchAggregator",
    "PredictionService",
    "LLMPriceEstimator",
]
