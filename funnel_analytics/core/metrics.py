from shared.metrics import get_counter, get_histogram

SERVICE = "funnel_analytics"

SNAPSHOT_DURATION = get_histogram(
    "snapshot_compute_seconds",
    "Time spent computing a snapshot, including the event store query",
    SERVICE,
    labelnames=("mode",),
)
EVENTS_LOADED = get_counter(
    "events_loaded_total", "Event records materialized for snapshots", SERVICE
)
EXTRACTOR_FAILURES = get_counter(
    "extractor_failures_total", "Metric extractor failures", SERVICE, ("block",)
)
ADAPTER_ERRORS = get_counter(
    "adapter_errors_total", "Event store query failures", SERVICE, ("reason",)
)
COALESCED_REFRESHES = get_counter(
    "coalesced_refreshes_total", "Refresh requests joined to an in-flight one", SERVICE
)
DISCARDED_RESULTS = get_counter(
    "discarded_results_total",
    "Computed results not applied to the cache",
    SERVICE,
    ("reason",),
)
