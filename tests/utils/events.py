import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, List

from funnel_analytics.domain.events import EventKind, EventRecord

BASE_TIME = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


def create_test_event(
    kind: str = EventKind.PAGE_VISIT,
    user_id: str | None = None,
    minutes: float = 0,
    anonymous: bool = False,
    **properties: Any,
) -> EventRecord:
    """
    Create an event record for extractor and orchestrator tests.

    Args:
        kind: Event kind
        user_id: User identifier (random when omitted)
        minutes: Offset from BASE_TIME
        anonymous: Identity class of the user
        properties: Kind-specific properties (page, step_id, method, ...)
    """
    return EventRecord(
        kind=kind,
        timestamp=BASE_TIME + timedelta(minutes=minutes),
        user_id=user_id or f"test-user-{uuid.uuid4()}",
        is_anonymous=anonymous,
        properties=properties,
    )


def funnel_scenario() -> List[EventRecord]:
    """100 visitors, 40 starters (10 anonymous), 25 completers."""
    events = []
    for i in range(100):
        user = f"user-{i}"
        anonymous = i < 10
        events.append(create_test_event(EventKind.PAGE_VISIT, user, i, anonymous, page="survey"))
        if i < 40:
            events.append(create_test_event(EventKind.SURVEY_START, user, 200 + i, anonymous))
        if 10 <= i < 35:
            events.append(create_test_event(EventKind.SURVEY_COMPLETE, user, 300 + i, anonymous))
    return events
