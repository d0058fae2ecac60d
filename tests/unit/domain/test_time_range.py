from datetime import datetime, timedelta, timezone

import pytest

from funnel_analytics.core.errors import InvalidRangeError
from funnel_analytics.domain.time_range import (
    EPOCH,
    Preset,
    TimeRange,
    format_window,
    resolve,
    to_instant,
)

NOW = datetime(2026, 10, 18, 3, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "preset,duration",
    [("24h", timedelta(hours=24)), ("7d", timedelta(days=7)), ("30d", timedelta(days=30))],
)
def test_presets_end_at_now(preset, duration):
    window = resolve(TimeRange.of(preset), now=NOW)
    assert window.end == NOW
    assert window.start == NOW - duration


def test_all_time_starts_at_epoch():
    window = resolve(TimeRange.of(Preset.ALL), now=NOW)
    assert window.start == EPOCH
    assert window.end == NOW


def test_naive_custom_bounds_use_reference_timezone():
    selector = TimeRange.custom(datetime(2026, 10, 1), datetime(2026, 10, 7, 23, 59))
    window = resolve(selector, tz_name="Asia/Tokyo")
    assert window.start == datetime(2026, 9, 30, 15, 0, tzinfo=timezone.utc)
    assert window.end == datetime(2026, 10, 7, 14, 59, tzinfo=timezone.utc)


def test_custom_start_after_end_is_rejected():
    selector = TimeRange.custom(datetime(2026, 10, 7), datetime(2026, 10, 1))
    with pytest.raises(InvalidRangeError):
        resolve(selector)


def test_custom_missing_bound_is_rejected():
    with pytest.raises(InvalidRangeError):
        resolve(TimeRange(preset=Preset.CUSTOM, start=datetime(2026, 10, 1)))


def test_invalid_range_is_a_value_error():
    assert issubclass(InvalidRangeError, ValueError)


def test_window_bounds_are_inclusive():
    start = datetime(2026, 10, 1, tzinfo=timezone.utc)
    end = datetime(2026, 10, 2, tzinfo=timezone.utc)
    window = resolve(TimeRange.custom(start, end))
    assert window.contains(start)
    assert window.contains(end)
    assert not window.contains(end + timedelta(milliseconds=1))
    assert not window.contains(start - timedelta(milliseconds=1))


def test_window_key_is_stable_for_same_instants():
    selector = TimeRange.custom(datetime(2026, 10, 1), datetime(2026, 10, 7))
    assert resolve(selector).key == resolve(selector).key
    assert resolve(selector).key.startswith("custom:")


def test_to_instant_keeps_aware_values():
    aware = datetime(2026, 10, 1, 9, 0, tzinfo=timezone(timedelta(hours=9)))
    assert to_instant(aware) == datetime(2026, 10, 1, 0, 0, tzinfo=timezone.utc)


def test_format_window_labels():
    assert format_window(resolve(TimeRange.of("7d"), now=NOW)) == "Last 7 Days"
    assert format_window(resolve(TimeRange.of("all"), now=NOW)) == "All Time"
    custom = resolve(TimeRange.custom(datetime(2026, 10, 1), datetime(2026, 10, 7)))
    assert format_window(custom) == "Oct 1, 2026 - Oct 7, 2026"


def test_contains_reads_naive_timestamps_in_given_timezone():
    window = resolve(
        TimeRange.custom(
            datetime(2026, 10, 1, tzinfo=timezone.utc),
            datetime(2026, 10, 1, 12, tzinfo=timezone.utc),
        )
    )
    naive = datetime(2026, 10, 1, 10, 0)
    assert window.contains(naive, "Asia/Tokyo")
    assert not window.contains(naive, "America/New_York")
