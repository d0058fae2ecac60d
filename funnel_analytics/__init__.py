"""Analytics snapshot engine for the survey funnel dashboard."""

__version__ = "0.1.0"
