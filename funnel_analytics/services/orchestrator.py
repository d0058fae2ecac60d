from __future__ import annotations

import asyncio
import itertools
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import AbstractSet, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from funnel_analytics.core.concurrency import run_blocking
from funnel_analytics.core.config import settings
from funnel_analytics.core.errors import (
    AdapterError,
    AdapterQueryError,
    AdapterTimeoutError,
    ConcurrentRefreshError,
    StaleWindowError,
)
from funnel_analytics.core.logger import get_logger
from funnel_analytics.core.metrics import (
    ADAPTER_ERRORS,
    COALESCED_REFRESHES,
    EVENTS_LOADED,
    EXTRACTOR_FAILURES,
    SNAPSHOT_DURATION,
)
from funnel_analytics.domain.events import EventRecord
from funnel_analytics.domain.models import MetricBlock, MetricName, Snapshot
from funnel_analytics.domain.rates import Rate, percentage
from funnel_analytics.domain.time_range import ResolvedWindow, TimeRange, resolve
from funnel_analytics.extractors import (
    ExtractionContext,
    Extractor,
    blocks_for,
    default_extractors,
    kinds_for,
)
from funnel_analytics.infrastructure.event_store import EventStoreAdapter

from .snapshot_cache import SnapshotCache

logger = get_logger("orchestrator")

OVERVIEW_BLOCK = "overview"
FULL_REFRESH = "all"


def derive_overview(snapshot: Snapshot) -> Snapshot:
    """Recompute the cross-cutting ``overview`` block from the other blocks."""
    funnel = snapshot.block("surveyFunnel")
    signups = snapshot.block("signups")
    dialog = snapshot.block("dialogCloses")

    unique_users = funnel["uniqueUsers"] if funnel else 0
    unique_signups = signups["uniqueTotalSignups"] if signups else 0
    overview = MetricBlock(
        name=OVERVIEW_BLOCK,
        data={
            "totalEvents": snapshot.event_count,
            "uniqueUsers": unique_users,
            "signupClicks": signups["signupClicks"] if signups else 0,
            "uniqueSignups": unique_signups,
            "conversionRate": percentage(unique_signups, unique_users),
            "dialogCloses": dialog["dialogCloses"] if dialog else 0,
            "uniqueDialogCloses": dialog["uniqueDialogCloses"] if dialog else 0,
            "dialogCloseConversionRate": (
                dialog["dialogCloseConversionRate"] if dialog else Rate.zero()
            ),
        },
    )
    return snapshot.model_copy(
        update={"blocks": {**snapshot.blocks, OVERVIEW_BLOCK: overview}}
    )


@dataclass(frozen=True)
class RefreshResult:
    """Outcome of one refresh request.

    ``snapshot`` is the cache state after the request; ``errors`` lists blocks
    whose extractor failed. ``applied`` is False when the result was discarded
    because a newer request or a different window took over the cache.
    """

    snapshot: Optional[Snapshot]
    mode: str
    blocks: Tuple[str, ...]
    sequence: int
    applied: bool
    errors: Dict[str, str] = field(default_factory=dict)
    stale: bool = False
    coalesced: bool = False


class AggregationOrchestrator:
    """Runs extractors over one shared event query and writes the cache.

    Identical requests (same selector, same blocks) are coalesced: a caller
    arriving while one is in flight awaits the same task instead of issuing a
    second query. With ``coalesce=False`` it gets ConcurrentRefreshError.
    """

    def __init__(
        self,
        store: EventStoreAdapter,
        cache: SnapshotCache,
        extractors: Optional[Dict[str, Extractor]] = None,
        context: Optional[ExtractionContext] = None,
        timeout: Optional[float] = None,
        coalesce: Optional[bool] = None,
        filter_partial_queries: Optional[bool] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.cache = cache
        self.extractors = extractors or default_extractors()
        self.context = context or ExtractionContext.from_settings()
        self.timeout = settings.adapter_timeout_seconds if timeout is None else timeout
        self.coalesce = settings.coalesce_refreshes if coalesce is None else coalesce
        self.filter_partial_queries = (
            settings.partial_query_filtering
            if filter_partial_queries is None
            else filter_partial_queries
        )
        self.clock = clock
        self._sequence = itertools.count(1)
        self._in_flight: Dict[str, Tuple[Tuple[str, ...], asyncio.Task]] = {}

    def in_flight(self) -> List[str]:
        """Block names with a refresh outstanding; ``all`` for full refreshes."""
        names = set()
        for blocks, _ in self._in_flight.values():
            names.update(blocks or (FULL_REFRESH,))
        return sorted(names)

    def empty_snapshot(self, selector: TimeRange) -> Snapshot:
        """Zero-valued snapshot for ``selector``, shaped like a computed one."""
        window = resolve(selector, now=self.clock(), tz_name=settings.reference_timezone)
        return derive_overview(
            Snapshot(
                window=window,
                generated_at=self.clock(),
                blocks={
                    name: extractor.empty(self.context)
                    for name, extractor in self.extractors.items()
                },
            )
        )

    async def compute_snapshot(
        self,
        selector: TimeRange,
        metrics: Optional[Iterable[str | MetricName]] = None,
    ) -> RefreshResult:
        """Full refresh when ``metrics`` is None or contains ``all``; otherwise
        recompute only the blocks backing the named metrics."""
        blocks = blocks_for(metrics)
        window = self._window_for(selector, blocks)
        if blocks is not None and window is None:
            logger.info(
                "partial_refresh_promoted_to_full",
                extra={"time_range": selector.preset.value, "blocks": list(blocks)},
            )
            blocks = None
        if window is None:
            window = resolve(selector, now=self.clock(), tz_name=settings.reference_timezone)

        target = self._target(window, blocks)
        existing = self._in_flight.get(target)
        if existing is not None:
            if not self.coalesce:
                raise ConcurrentRefreshError(target)
            COALESCED_REFRESHES.inc()
            logger.info("refresh_coalesced", extra={"target": target})
            result = await asyncio.shield(existing[1])
            return replace(result, coalesced=True)

        sequence = next(self._sequence)
        task = asyncio.ensure_future(self._run(window, blocks, sequence))
        self._in_flight[target] = (blocks or (), task)
        task.add_done_callback(lambda t: self._release(target, t))
        return await asyncio.shield(task)

    def _window_for(
        self, selector: TimeRange, blocks: Optional[Sequence[str]]
    ) -> Optional[ResolvedWindow]:
        """Resolved window shared with the cached snapshot for partial refreshes."""
        if blocks is None:
            return None
        cached = self.cache.get()
        if cached is not None and cached.window.selector == selector:
            return cached.window
        # validate a custom selector before promoting to a full refresh
        resolve(selector, now=self.clock(), tz_name=settings.reference_timezone)
        return None

    @staticmethod
    def _target(window: ResolvedWindow, blocks: Optional[Sequence[str]]) -> str:
        selector = window.selector
        scope = window.key if selector.start is not None else selector.preset.value
        return f"{scope}|{','.join(blocks) if blocks else FULL_REFRESH}"

    def _release(self, target: str, task: asyncio.Task) -> None:
        entry = self._in_flight.get(target)
        if entry is not None and entry[1] is task:
            del self._in_flight[target]
        # callers may all have been cancelled; mark the outcome as observed
        if not task.cancelled():
            task.exception()

    async def _run(
        self,
        window: ResolvedWindow,
        blocks: Optional[Tuple[str, ...]],
        sequence: int,
    ) -> RefreshResult:
        mode = "full" if blocks is None else "partial"
        names = list(self.extractors) if blocks is None else list(blocks)
        extractors = [self.extractors[name] for name in names]
        kinds = (
            kinds_for(extractors)
            if blocks is not None and self.filter_partial_queries
            else None
        )

        started = time.perf_counter()
        events = await self._load(window, kinds)
        computed, errors = await self._extract(names, extractors, events, window)

        stale = False
        if blocks is None:
            snapshot = Snapshot(
                window=window,
                generated_at=self.clock(),
                blocks=computed,
                errors=errors,
                sequence=sequence,
                block_sequences=dict.fromkeys(computed, sequence),
                event_count=len(events),
            )
            applied = await self.cache.replace_all(snapshot)
        elif computed:
            try:
                applied = await self.cache.replace_blocks(
                    window, list(computed.values()), sequence
                )
            except StaleWindowError as e:
                logger.warning(
                    "block_discarded_stale_window",
                    extra={"blocks": names, "error": str(e)},
                )
                applied, stale = False, True
        else:
            applied = False

        elapsed = time.perf_counter() - started
        SNAPSHOT_DURATION.labels(mode).observe(elapsed)
        logger.info(
            "snapshot_computed",
            extra={
                "mode": mode,
                "window": window.key,
                "blocks": names,
                "events": len(events),
                "failed_blocks": sorted(errors),
                "applied": applied,
                "sequence": sequence,
                "duration_ms": round(elapsed * 1000, 2),
            },
        )
        return RefreshResult(
            snapshot=self.cache.get(),
            mode=mode,
            blocks=tuple(names),
            sequence=sequence,
            applied=applied,
            errors=errors,
            stale=stale,
        )

    async def _load(
        self, window: ResolvedWindow, kinds: Optional[AbstractSet[str]]
    ) -> Tuple[EventRecord, ...]:
        try:
            events = await asyncio.wait_for(
                self.store.query(window.start, window.end, kinds),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            ADAPTER_ERRORS.labels("timeout").inc()
            logger.error(
                "event_store_timeout",
                extra={"window": window.key, "timeout": self.timeout},
            )
            raise AdapterTimeoutError(self.timeout) from None
        except AdapterError:
            ADAPTER_ERRORS.labels("query").inc()
            raise
        except Exception as e:
            ADAPTER_ERRORS.labels("query").inc()
            logger.error(
                "event_store_query_failed",
                extra={"window": window.key, "error": str(e)},
            )
            raise AdapterQueryError(str(e)) from e
        EVENTS_LOADED.inc(len(events))
        return tuple(events)

    async def _extract(
        self,
        names: List[str],
        extractors: List[Extractor],
        events: Tuple[EventRecord, ...],
        window: ResolvedWindow,
    ) -> Tuple[Dict[str, MetricBlock], Dict[str, str]]:
        results = await asyncio.gather(
            *(run_blocking(ex, events, window, self.context) for ex in extractors),
            return_exceptions=True,
        )
        computed: Dict[str, MetricBlock] = {}
        errors: Dict[str, str] = {}
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                EXTRACTOR_FAILURES.labels(name).inc()
                logger.error(
                    "extractor_failed",
                    extra={"block": name, "error": str(result)},
                    exc_info=result,
                )
                errors[name] = f"{type(result).__name__}: {result}"
            elif isinstance(result, BaseException):
                raise result
            else:
                computed[name] = result
        return computed, errors
