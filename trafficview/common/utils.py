from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def now_in(zone_name: str | None) -> datetime:
    if not zone_name:
        return utc_now()
    return datetime.now(ZoneInfo(zone_name))


def elapsed_before(value: datetime, span: timedelta) -> datetime:
    """Return the instant ``span`` of real time before ``value``.

    Aware values are shifted in UTC and converted back, so daylight saving
    transitions cannot stretch or collapse the span.
    """
    if value.tzinfo is None:
        return value - span
    return (value.astimezone(timezone.utc) - span).astimezone(value.tzinfo)


def to_api_iso(value: datetime) -> str:
    """Serialize a datetime the way the counts service expects it.

    Naive values are taken as UTC. Output is UTC with millisecond precision
    and a ``Z`` suffix, e.g. ``2024-01-01T11:00:00.000Z``.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_api_timestamp(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def localize(value: datetime, zone: tzinfo | None) -> datetime:
    if zone is None:
        return value
    return value.astimezone(zone)
