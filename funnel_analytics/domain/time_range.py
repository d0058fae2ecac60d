"""Time window resolution.

Selectors are either a preset relative to "now" or an explicit custom range.
Everything is compared as timezone-aware UTC instants; the reference timezone
is used only to interpret naive inputs and to render labels.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict

from funnel_analytics.core.errors import InvalidRangeError

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class Preset(str, Enum):
    LAST_24H = "24h"
    LAST_7D = "7d"
    LAST_30D = "30d"
    ALL = "all"
    CUSTOM = "custom"


PRESET_DURATIONS = {
    Preset.LAST_24H: timedelta(hours=24),
    Preset.LAST_7D: timedelta(days=7),
    Preset.LAST_30D: timedelta(days=30),
}

PRESET_LABELS = {
    Preset.LAST_24H: "Last 24 Hours",
    Preset.LAST_7D: "Last 7 Days",
    Preset.LAST_30D: "Last 30 Days",
    Preset.ALL: "All Time",
    Preset.CUSTOM: "Custom Range",
}


def to_instant(dt: datetime, tz_name: str = "Asia/Tokyo") -> datetime:
    """Attach the reference timezone to naive values and normalise to UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=ZoneInfo(tz_name))
    return dt.astimezone(timezone.utc)


class TimeRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    preset: Preset
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @classmethod
    def of(cls, preset: str | Preset) -> "TimeRange":
        return cls(preset=Preset(preset))

    @classmethod
    def custom(cls, start: datetime, end: datetime) -> "TimeRange":
        return cls(preset=Preset.CUSTOM, start=start, end=end)


class ResolvedWindow(BaseModel):
    """A selector pinned to concrete instants (inclusive on both ends)."""

    model_config = ConfigDict(frozen=True)

    selector: TimeRange
    start: datetime
    end: datetime

    @property
    def key(self) -> str:
        start_ms = int(self.start.timestamp() * 1000)
        end_ms = int(self.end.timestamp() * 1000)
        return f"{self.selector.preset.value}:{start_ms}-{end_ms}"

    def contains(self, ts: datetime, tz_name: str = "Asia/Tokyo") -> bool:
        return self.start <= to_instant(ts, tz_name) <= self.end


def resolve(
    selector: TimeRange,
    now: Optional[datetime] = None,
    tz_name: str = "Asia/Tokyo",
) -> ResolvedWindow:
    if selector.preset is Preset.CUSTOM:
        if selector.start is None or selector.end is None:
            raise InvalidRangeError("Custom range requires both start and end")
        start = to_instant(selector.start, tz_name)
        end = to_instant(selector.end, tz_name)
        if start > end:
            raise InvalidRangeError(
                f"Custom range start {start.isoformat()} is after end {end.isoformat()}"
            )
        return ResolvedWindow(selector=selector, start=start, end=end)

    end = to_instant(now, tz_name) if now else datetime.now(timezone.utc)
    if selector.preset is Preset.ALL:
        start = EPOCH
    else:
        start = end - PRESET_DURATIONS[selector.preset]
    return ResolvedWindow(selector=selector, start=start, end=end)


def format_window(window: ResolvedWindow, tz_name: str = "Asia/Tokyo") -> str:
    if window.selector.preset is not Preset.CUSTOM:
        return PRESET_LABELS[window.selector.preset]
    tz = ZoneInfo(tz_name)
    return f"{_format_day(window.start.astimezone(tz))} - {_format_day(window.end.astimezone(tz))}"


def _format_day(dt: datetime) -> str:
    return f"{dt:%b} {dt.day}, {dt.year}"
