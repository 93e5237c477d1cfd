from __future__ import annotations

from datetime import date, datetime, time, timedelta

from trafficview.common.schemas import Selection, TimeWindow
from trafficview.common.utils import elapsed_before
from trafficview.windows.intervals import FULL_DAY, LAST_SLOT_END, is_known_interval


LIVE = "live"
LAST_HOUR = "lastHour"
LAST_6_HOURS = "last6Hours"
LAST_24_HOURS = "last24Hours"
SELECT_DATE = "selectDate"

RELATIVE_SPANS: dict[str, timedelta] = {
    LIVE: timedelta(hours=1),
    LAST_HOUR: timedelta(hours=1),
    LAST_6_HOURS: timedelta(hours=6),
    LAST_24_HOURS: timedelta(hours=24),
}
SELECTION_MODES: tuple[str, ...] = (LIVE, LAST_HOUR, LAST_6_HOURS, LAST_24_HOURS, SELECT_DATE)

END_OF_DAY = time(23, 59, 59, 999000)


class MalformedSelection(ValueError):
    """Raised when a selection cannot be resolved to a window."""


def resolve_window(selection: Selection, now: datetime) -> TimeWindow:
    """Resolve a selection into a concrete window.

    ``now`` is captured once by the caller so repeated evaluation within one
    refresh cycle cannot drift. For ``selectDate`` the wall-clock bounds are
    built in ``now``'s timezone and ``now`` itself is otherwise ignored.
    """
    span = RELATIVE_SPANS.get(selection.mode)
    if span is not None:
        return TimeWindow(start=elapsed_before(now, span), end=now)
    if selection.mode != SELECT_DATE:
        raise MalformedSelection(f"Unknown selection mode: {selection.mode!r}")
    if selection.date is None:
        raise MalformedSelection("selectDate requires a date")
    if not selection.interval_label:
        raise MalformedSelection("selectDate requires an interval label")
    return _resolve_day_interval(selection.date, selection.interval_label, now)


def _resolve_day_interval(day: date, label: str, now: datetime) -> TimeWindow:
    zone = now.tzinfo
    if label == FULL_DAY:
        return TimeWindow(
            start=datetime.combine(day, time.min, tzinfo=zone),
            end=datetime.combine(day, END_OF_DAY, tzinfo=zone),
        )
    if not is_known_interval(label):
        raise MalformedSelection(f"Interval {label!r} is not in the interval catalog")
    start_str, end_str = label.split(" - ")
    start = datetime.combine(day, _parse_hhmm(start_str), tzinfo=zone)
    if end_str == LAST_SLOT_END:
        end = datetime.combine(day, END_OF_DAY, tzinfo=zone)
    else:
        end = datetime.combine(day, _parse_hhmm(end_str), tzinfo=zone)
    return TimeWindow(start=start, end=end)


def _parse_hhmm(value: str) -> time:
    try:
        hour_str, minute_str = value.split(":")
        return time(int(hour_str), int(minute_str))
    except ValueError as exc:
        raise MalformedSelection(f"Invalid time of day: {value!r}") from exc
