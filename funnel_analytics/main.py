import asyncio
from contextlib import asynccontextmanager

import redis.asyncio as redis
from fastapi import FastAPI
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from funnel_analytics import __version__
from funnel_analytics.api.router import api_router
from funnel_analytics.core.config import settings
from funnel_analytics.core.logger import configure_logging, get_logger
from funnel_analytics.infrastructure.event_store.clickhouse import ClickHouseEventStore
from funnel_analytics.infrastructure.redis.repository import SnapshotRepository
from funnel_analytics.services.orchestrator import (
    AggregationOrchestrator,
    derive_overview,
)
from funnel_analytics.services.snapshot_cache import SnapshotCache
from shared.utils.retry import retry_async

# Configure logging once and get service logger
configure_logging()
logger = get_logger("funnel_analytics.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("snapshot_service_starting", extra={"version": __version__})
    app.state.ready_event = asyncio.Event()
    app.state.store = ClickHouseEventStore()
    app.state.redis = await _init_redis_with_retry() if settings.redis_enabled else None

    repository = None
    if app.state.redis is not None:
        repository = SnapshotRepository(
            app.state.redis,
            settings.snapshot_retention_count,
            settings.snapshot_hash_ttl_seconds,
        )
    app.state.cache = SnapshotCache(repository, derive=derive_overview)
    await app.state.cache.warm()
    app.state.orchestrator = AggregationOrchestrator(app.state.store, app.state.cache)
    app.state.ready_event.set()
    try:
        yield
    finally:
        logger.info("snapshot_service_stopping")
        app.state.store.close()
        if app.state.redis is not None:
            await app.state.redis.close()


app = FastAPI(
    title="Funnel Analytics Snapshot Service", version=__version__, lifespan=lifespan
)
app.include_router(api_router)


async def _init_redis_with_retry():
    async def _connect():
        r = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            socket_timeout=settings.redis_socket_timeout_seconds,
            socket_connect_timeout=settings.redis_socket_timeout_seconds,
            decode_responses=True,
        )
        await r.ping()
        return r

    async def _on_retry(attempt: int, exc: BaseException, sleep_for: float):
        logger.warning(
            "redis_connect_retry",
            extra={
                "attempt": attempt,
                "error": str(exc),
                "sleep_for": round(sleep_for, 2),
            },
        )

    r = await retry_async(
        _connect,
        retries=6,
        base_delay=0.5,
        max_delay=8.0,
        jitter=0.2,
        on_retry=_on_retry,
    )
    logger.info("redis_connected")
    return r


@app.get("/metrics")
async def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
