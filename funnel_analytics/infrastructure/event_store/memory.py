from __future__ import annotations

from datetime import datetime
from typing import AbstractSet, Iterable, Optional, Sequence

from funnel_analytics.core.config import settings
from funnel_analytics.domain.events import EventRecord
from funnel_analytics.domain.time_range import to_instant

from .base import EventStoreAdapter


class InMemoryEventStore(EventStoreAdapter):
    """Event store over a fixed in-process list; used by tests.

    Naive timestamps are read in ``tz_name`` (the configured reference
    timezone by default).
    """

    def __init__(self, events: Iterable[EventRecord] = (), tz_name: str | None = None):
        self.tz_name = tz_name or settings.reference_timezone
        self.events = tuple(
            sorted(events, key=lambda e: to_instant(e.timestamp, self.tz_name))
        )
        self.queries = 0

    async def query(
        self,
        start: datetime,
        end: datetime,
        kinds: Optional[AbstractSet[str]] = None,
    ) -> Sequence[EventRecord]:
        self.queries += 1
        return [
            event
            for event in self.events
            if start <= to_instant(event.timestamp, self.tz_name) <= end
            and (kinds is None or event.kind in kinds)
        ]
