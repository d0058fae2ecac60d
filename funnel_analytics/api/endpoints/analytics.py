from fastapi import APIRouter, Depends, HTTPException, status

from funnel_analytics.api.dependencies import get_cache, get_orchestrator
from funnel_analytics.api.schemas import (
    InFlightResponse,
    RefreshRequest,
    RefreshResponse,
    SnapshotResponse,
)
from funnel_analytics.core.config import settings
from funnel_analytics.core.errors import (
    AdapterQueryError,
    AdapterTimeoutError,
    ConcurrentRefreshError,
    InvalidRangeError,
    UnknownMetricError,
)
from funnel_analytics.core.logger import get_logger
from funnel_analytics.domain.time_range import Preset, TimeRange
from funnel_analytics.services.orchestrator import AggregationOrchestrator
from funnel_analytics.services.snapshot_cache import SnapshotCache

router = APIRouter(prefix="/analytics")
logger = get_logger("api.analytics")


@router.get("/snapshot", response_model=SnapshotResponse)
async def snapshot(
    numeric: bool = False,
    cache: SnapshotCache = Depends(get_cache),
    orchestrator: AggregationOrchestrator = Depends(get_orchestrator),
):
    current = cache.get()
    if current is None:
        empty = orchestrator.empty_snapshot(TimeRange.of(Preset.LAST_7D))
        return SnapshotResponse(
            data=empty.as_dict(numeric, settings.reference_timezone), source="empty"
        )
    return SnapshotResponse(
        data=current.as_dict(numeric, settings.reference_timezone), source="cache"
    )


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(
    request: RefreshRequest,
    numeric: bool = False,
    orchestrator: AggregationOrchestrator = Depends(get_orchestrator),
):
    try:
        result = await orchestrator.compute_snapshot(
            request.selector(), [request.metric]
        )
    except (InvalidRangeError, UnknownMetricError) as e:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except ConcurrentRefreshError as e:
        raise HTTPException(status.HTTP_409_CONFLICT, detail=str(e))
    except AdapterTimeoutError as e:
        raise HTTPException(status.HTTP_504_GATEWAY_TIMEOUT, detail=str(e))
    except AdapterQueryError as e:
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, detail=str(e))

    if result.stale:
        logger.warning(
            "refresh_result_stale",
            extra={"metric": request.metric, "time_range": request.time_range.value},
        )
    snapshot = result.snapshot
    return RefreshResponse(
        data=snapshot.as_dict(numeric, settings.reference_timezone) if snapshot else None,
        mode=result.mode,
        blocks=list(result.blocks),
        applied=result.applied,
        stale=result.stale,
        coalesced=result.coalesced,
        errors=result.errors,
    )


@router.get("/in-flight")
async def in_flight(orchestrator: AggregationOrchestrator = Depends(get_orchestrator)):
    return InFlightResponse(in_flight=orchestrator.in_flight()).model_dump(by_alias=True)
