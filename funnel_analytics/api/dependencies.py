from fastapi import Request

from funnel_analytics.services.orchestrator import AggregationOrchestrator
from funnel_analytics.services.snapshot_cache import SnapshotCache


def get_cache(request: Request) -> SnapshotCache:
    return request.app.state.cache  # type: ignore[return-value]


def get_orchestrator(request: Request) -> AggregationOrchestrator:
    return request.app.state.orchestrator  # type: ignore[return-value]
