from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from trafficview.common.schemas import Selection, TimeWindow
from trafficview.windows.resolver import (
    LAST_6_HOURS,
    LAST_24_HOURS,
    LAST_HOUR,
    LIVE,
    SELECT_DATE,
    MalformedSelection,
    resolve_window,
)

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def test_live_window_is_last_hour() -> None:
    window = resolve_window(Selection(mode=LIVE), NOW)
    assert window.start == datetime(2024, 1, 1, 11, 0, tzinfo=timezone.utc)
    assert window.end == NOW


@pytest.mark.parametrize(
    "mode, hours",
    [(LAST_HOUR, 1), (LAST_6_HOURS, 6), (LAST_24_HOURS, 24)],
)
def test_relative_windows(mode: str, hours: int) -> None:
    window = resolve_window(Selection(mode=mode), NOW)
    assert window.end == NOW
    assert window.end - window.start == timedelta(hours=hours)


def test_full_day_ignores_now() -> None:
    day = date(2024, 3, 10)
    for now in (NOW, NOW + timedelta(days=40, hours=7)):
        window = resolve_window(Selection(mode=SELECT_DATE, date=day, interval_label="Full Day"), now)
        assert window.start == datetime(2024, 3, 10, 0, 0, tzinfo=timezone.utc)
        assert window.end == datetime(2024, 3, 10, 23, 59, 59, 999000, tzinfo=timezone.utc)


@pytest.mark.parametrize("label", [None, ""])
def test_missing_interval_fails_fast(label) -> None:
    selection = Selection(mode=SELECT_DATE, date=date(2024, 3, 10), interval_label=label)
    with pytest.raises(MalformedSelection):
        resolve_window(selection, NOW)


def test_quarter_hour_interval() -> None:
    selection = Selection(mode=SELECT_DATE, date=date(2024, 3, 10), interval_label="09:00 - 09:15")
    window = resolve_window(selection, NOW)
    assert window.start == datetime(2024, 3, 10, 9, 0, tzinfo=timezone.utc)
    assert window.end == datetime(2024, 3, 10, 9, 15, tzinfo=timezone.utc)


def test_interval_ending_on_the_hour() -> None:
    selection = Selection(mode=SELECT_DATE, date=date(2024, 3, 10), interval_label="10:45 - 11:00")
    window = resolve_window(selection, NOW)
    assert window.start == datetime(2024, 3, 10, 10, 45, tzinfo=timezone.utc)
    assert window.end == datetime(2024, 3, 10, 11, 0, tzinfo=timezone.utc)


def test_last_slot_closes_at_end_of_day() -> None:
    selection = Selection(mode=SELECT_DATE, date=date(2024, 3, 10), interval_label="23:45 - 23:59")
    window = resolve_window(selection, NOW)
    assert window.start == datetime(2024, 3, 10, 23, 45, tzinfo=timezone.utc)
    assert window.end == datetime(2024, 3, 10, 23, 59, 59, 999000, tzinfo=timezone.utc)


def test_select_date_uses_timezone_of_now() -> None:
    zone = ZoneInfo("Asia/Bangkok")
    now = datetime(2024, 3, 11, 8, 0, tzinfo=zone)
    selection = Selection(mode=SELECT_DATE, date=date(2024, 3, 10), interval_label="Full Day")
    window = resolve_window(selection, now)
    assert window.start == datetime(2024, 3, 10, 0, 0, tzinfo=zone)
    assert window.start.astimezone(timezone.utc) == datetime(2024, 3, 9, 17, 0, tzinfo=timezone.utc)


def test_unknown_mode_fails_fast() -> None:
    with pytest.raises(MalformedSelection):
        resolve_window(Selection(mode="lastWeek"), NOW)


def test_select_date_without_date_fails_fast() -> None:
    with pytest.raises(MalformedSelection):
        resolve_window(Selection(mode=SELECT_DATE, interval_label="Full Day"), NOW)


def test_interval_outside_catalog_fails_fast() -> None:
    selection = Selection(mode=SELECT_DATE, date=date(2024, 3, 10), interval_label="09:05 - 09:20")
    with pytest.raises(MalformedSelection):
        resolve_window(selection, NOW)


def test_resolution_is_repeatable() -> None:
    selection = Selection(mode=LAST_6_HOURS)
    assert resolve_window(selection, NOW) == resolve_window(selection, NOW)


NEW_YORK = ZoneInfo("America/New_York")


def test_live_window_spans_one_real_hour_across_spring_forward() -> None:
    now = datetime(2024, 3, 10, 3, 30, tzinfo=NEW_YORK)
    window = resolve_window(Selection(mode=LIVE), now)
    assert window.start == datetime(2024, 3, 10, 1, 30, tzinfo=NEW_YORK)
    assert window.end.astimezone(timezone.utc) - window.start.astimezone(timezone.utc) == timedelta(hours=1)
    assert window.duration_seconds == 3600


def test_last_24_hours_spans_one_real_day_across_spring_forward() -> None:
    now = datetime(2024, 3, 10, 12, 0, tzinfo=NEW_YORK)
    window = resolve_window(Selection(mode=LAST_24_HOURS), now)
    assert window.start == datetime(2024, 3, 9, 11, 0, tzinfo=NEW_YORK)
    assert window.duration_seconds == 24 * 3600


def test_last_hour_spans_one_real_hour_across_fall_back() -> None:
    now = datetime(2024, 11, 3, 1, 30, fold=1, tzinfo=NEW_YORK)
    window = resolve_window(Selection(mode=LAST_HOUR), now)
    assert window.start.astimezone(timezone.utc) == datetime(2024, 11, 3, 5, 30, tzinfo=timezone.utc)
    assert window.duration_seconds == 3600
    assert window.contains(window.start)


def test_time_window_rejects_start_after_end() -> None:
    with pytest.raises(ValueError):
        TimeWindow(start=NOW, end=NOW - timedelta(seconds=1))


def test_time_window_contains_is_half_open() -> None:
    window = TimeWindow(start=NOW - timedelta(hours=1), end=NOW)
    assert window.contains(NOW - timedelta(hours=1))
    assert not window.contains(NOW)
