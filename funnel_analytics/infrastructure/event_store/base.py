from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import AbstractSet, Optional, Sequence

from funnel_analytics.domain.events import EventRecord


class EventStoreAdapter(ABC):
    """
    Read access to raw event records.

    ``query`` returns events with ``start <= timestamp <= end``. When ``kinds``
    is given implementations should restrict the result to those kinds, but
    callers filter again so a store that ignores it is still correct. Failures
    must be raised (``AdapterQueryError``); retries, if any, belong here and
    not in the snapshot engine.
    """

    @abstractmethod
    async def query(
        self,
        start: datetime,
        end: datetime,
        kinds: Optional[AbstractSet[str]] = None,
    ) -> Sequence[EventRecord]:
        raise NotImplementedError

    async def ping(self) -> bool:
        return True

    def close(self) -> None:
        pass
