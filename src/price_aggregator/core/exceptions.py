"""Custom exception hierarchy for price-aggregator."""

from typing import Any


class PriceAggregatorError(Exception):
    """Base exception for all price-aggregator errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(PriceAggregatorError):
    """Invalid or missing configuration.

    Raised by load_config() during startup. Should be treated as fatal.

    Context keys:
        field: str — the config field that failed validation
        value: Any — the invalid value (redacted for secrets)
    """


class AssetNotFoundError(PriceAggregatorError):
    """The requested asset does not exist in the asset repository.

    Policy: surface to the caller. Never retried.

    Context keys:
        asset_id: str — the id that was looked up
    """


class MissingSymbolError(PriceAggregatorError):
    """A financial asset has no symbol, so no provider can quote it.

    Policy: surface to the caller as a per-asset failure.
    Collectible types are exempt.

    Context keys:
        asset_id: str
        asset_type: str
    """


class ProviderError(PriceAggregatorError):
    """A provider request failed at the transport level.

    Policy: log at error level and continue with the next provider in the
    chain. Treated exactly like "no data" by the resolver.

    Context keys:
        provider: str — provider identifier
        url: str — the URL that was being fetched
        status_code: int | None
    """


class ProviderRateLimitError(ProviderError):
    """Provider rate limit exceeded (HTTP 429) after retries.

    Policy: backoff and retry (handled by ProviderHttpClient internally),
    then behave like ProviderError.

    Context keys:
        retry_after: int | None — seconds to wait
    """


class ResolutionError(PriceAggregatorError):
    """Every provider in the resolution chain failed to produce a quote.

    Policy: report as a per-asset failure. Never fatal for a batch.

    Context keys:
        asset_id: str
        asset_type: str
        tried: list[str] — providers attempted, in order
    """


class StorageError(PriceAggregatorError):
    """Database operation failed.

    Policy: raise immediately, except inside the history recorder where
    failures are logged and swallowed.

    Context keys:
        operation: str — "insert", "query", "migrate", etc.
        table: str — the table involved
    """


class PredictionError(PriceAggregatorError):
    """The optional prediction enrichment failed.

    Policy: log and return no prediction. Never affects valuation.

    Context keys:
        provider: str
        status_code: int | None
    """
