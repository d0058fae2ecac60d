"""Error types raised by the snapshot engine."""


class AnalyticsEngineError(Exception):
    """Base class for all engine errors."""


class InvalidRangeError(AnalyticsEngineError, ValueError):
    """Custom range with start after end, or with a missing bound."""


class UnknownMetricError(AnalyticsEngineError, ValueError):
    def __init__(self, name: str):
        super().__init__(f"Unknown metric '{name}'")
        self.name = name


class AdapterError(AnalyticsEngineError):
    """The event store could not serve the query."""


class AdapterTimeoutError(AdapterError):
    def __init__(self, timeout: float):
        super().__init__(f"Event store query exceeded {timeout:.1f}s")
        self.timeout = timeout


class AdapterQueryError(AdapterError):
    pass


class StaleWindowError(AnalyticsEngineError):
    """A block result targets a window the cache no longer holds."""

    def __init__(self, cached_key: str | None, block_key: str):
        super().__init__(
            f"Block computed for window {block_key} but cache holds {cached_key}"
        )
        self.cached_key = cached_key
        self.block_key = block_key


class ConcurrentRefreshError(AnalyticsEngineError):
    def __init__(self, target: str):
        super().__init__(f"Refresh already in flight for {target}")
        self.target = target
