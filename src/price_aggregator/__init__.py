"""price-aggregator: multi-provider price resolution and valuation core."""

__version__ = "0.1.0"
