from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet


class EventKind(str, Enum):
    """Known event kinds. Records may carry kinds outside this set."""

    PAGE_VISIT = "page_visit"
    SURVEY_START = "survey_start"
    SURVEY_STEP_START = "survey_step_start"
    SURVEY_STEP_COMPLETE = "survey_step_complete"
    SURVEY_COMPLETE = "survey_complete"
    SIGNUP = "signup"
    SIGNUP_CLICK = "signup_click"
    DIALOG_CLOSE = "dialog_close"
    RECOMMENDATION_INTEREST_CLICK = "recommendation_interest_click"


@dataclass(frozen=True)
class EventRecord:
    """
    One raw interaction as returned by the event store.

    ``kind`` is kept as a plain string so unknown kinds pass through untouched.
    ``properties`` holds the kind-specific parameters: ``page`` for visits,
    ``step_id`` for step events, ``survey_type`` for survey starts, ``method``
    for signups and ``company_id`` for interest clicks.
    """

    kind: str
    timestamp: datetime
    user_id: str
    is_anonymous: bool = False
    properties: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.kind, Enum):
            object.__setattr__(self, "kind", self.kind.value)

    def prop(self, name: str, default: Any = None) -> Any:
        return self.properties.get(name, default)


def kind_set(*kinds: str) -> FrozenSet[str]:
    """Frozenset of plain kind strings.

    ``str`` enums hash by member name, so sets of members would not match the
    raw strings stored on records.
    """
    return frozenset(k.value if isinstance(k, Enum) else str(k) for k in kinds)
