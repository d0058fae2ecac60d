from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Sequence, Set

from funnel_analytics.core.config import settings
from funnel_analytics.core.logger import get_logger
from funnel_analytics.domain.events import EventKind, EventRecord, kind_set
from funnel_analytics.domain.models import MetricBlock
from funnel_analytics.domain.time_range import ResolvedWindow, to_instant


@dataclass(frozen=True)
class ExtractionContext:
    """Configuration injected into extractors instead of module constants."""

    step_order: Sequence[str] = ()
    signup_methods: Sequence[str] = ("email", "google")
    recommendations_page: str = "recommendations"
    include_empty_steps: bool = False
    reference_timezone: str = "Asia/Tokyo"

    @classmethod
    def from_settings(cls) -> "ExtractionContext":
        return cls(
            step_order=tuple(settings.survey_step_order),
            signup_methods=tuple(m.lower() for m in settings.signup_methods),
            recommendations_page=settings.recommendations_page,
            include_empty_steps=settings.include_empty_steps,
            reference_timezone=settings.reference_timezone,
        )


class Extractor(ABC):
    """Pure aggregation of one event window into one named block.

    Subclasses declare the event kinds they read so partial refreshes can ask
    the event store for less data; ``__call__`` still filters the batch it is
    handed, so correctness never depends on the store filtering.
    """

    name: str
    kinds: FrozenSet[str]

    def __init__(self) -> None:
        self.logger = get_logger(f"extractor.{self.name}")

    def __call__(
        self,
        events: Iterable[EventRecord],
        window: ResolvedWindow,
        context: ExtractionContext,
    ) -> MetricBlock:
        tz_name = context.reference_timezone
        relevant = sorted(
            (
                e
                for e in events
                if e.kind in self.kinds and window.contains(e.timestamp, tz_name)
            ),
            key=lambda e: to_instant(e.timestamp, tz_name),
        )
        return self.extract(relevant, context)

    def empty(self, context: ExtractionContext) -> MetricBlock:
        """Zero-valued block with the same shape as a computed one."""
        return self.extract([], context)

    @abstractmethod
    def extract(
        self, events: List[EventRecord], context: ExtractionContext
    ) -> MetricBlock:
        """Build the block from time-ordered, pre-filtered events."""


def user_cohorts(events: Iterable[EventRecord]) -> Dict[str, bool]:
    """Map user id to the anonymous flag of its earliest event among ``events``.

    Expects events in time order.
    """
    cohorts: Dict[str, bool] = {}
    for event in events:
        cohorts.setdefault(event.user_id, event.is_anonymous)
    return cohorts


def stage_cohorts(events: Iterable[EventRecord]) -> Dict[str, bool]:
    """Map funnel user id to the anonymous flag of the event that triggered the
    user's furthest stage: the first survey start, else the first survey
    completion, else the first page visit.

    Expects events in time order.
    """
    events = list(events)
    cohorts: Dict[str, bool] = {}
    for kind in (EventKind.PAGE_VISIT, EventKind.SURVEY_COMPLETE, EventKind.SURVEY_START):
        cohorts.update(user_cohorts(e for e in events if e.kind == kind))
    return cohorts


def users_with(events: Iterable[EventRecord], *kinds: str) -> Set[str]:
    return {e.user_id for e in events if e.kind in kinds}


@dataclass
class FunnelStages:
    """Users that reached each survey stage.

    Reaching a later stage implies the earlier ones, so the sets are nested:
    completed <= started <= visitors.
    """

    visits: int = 0
    visitors: Set[str] = field(default_factory=set)
    started: Set[str] = field(default_factory=set)
    completed: Set[str] = field(default_factory=set)


FUNNEL_KINDS = kind_set(
    EventKind.PAGE_VISIT, EventKind.SURVEY_START, EventKind.SURVEY_COMPLETE
)


def funnel_stages(events: Iterable[EventRecord]) -> FunnelStages:
    stages = FunnelStages()
    for event in events:
        if event.kind == EventKind.PAGE_VISIT:
            stages.visits += 1
            stages.visitors.add(event.user_id)
        elif event.kind == EventKind.SURVEY_START:
            stages.started.add(event.user_id)
        elif event.kind == EventKind.SURVEY_COMPLETE:
            stages.completed.add(event.user_id)
    stages.started |= stages.completed
    stages.visitors |= stages.started
    return stages
