from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Mapping

from trafficview.categories.mapping import CATEGORIES, empty_counts
from trafficview.common.utils import parse_api_timestamp


@dataclass(frozen=True)
class Camera:
    camera_id: int
    name: str

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> Camera:
        return cls(camera_id=int(payload["camera_id"]), name=str(payload.get("name") or ""))


@dataclass(frozen=True)
class CountBucket:
    bucket_start: datetime
    counts: dict[str, int] = field(default_factory=empty_counts)

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> CountBucket:
        counts = {category: int(payload.get(category) or 0) for category in CATEGORIES}
        return cls(bucket_start=parse_api_timestamp(payload["start_ts"]), counts=counts)

    def count(self, category: str) -> int:
        return self.counts.get(category, 0) or 0

    @property
    def total(self) -> int:
        return sum(self.count(category) for category in CATEGORIES)


@dataclass(frozen=True)
class DetectionEvent:
    timestamp: datetime
    raw_class: str
    confidence: float | None = None
    direction: str | None = None

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> DetectionEvent:
        confidence = payload.get("conf")
        return cls(
            timestamp=parse_api_timestamp(payload["ts"]),
            raw_class=str(payload.get("vehicle_class") or ""),
            confidence=float(confidence) if confidence is not None else None,
            direction=payload.get("direction") or None,
        )


@dataclass(frozen=True)
class TimeWindow:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if _instant(self.start) > _instant(self.end):
            raise ValueError("TimeWindow start must not be after end")

    def contains(self, value: datetime) -> bool:
        return _instant(self.start) <= _instant(value) < _instant(self.end)

    @property
    def duration_seconds(self) -> float:
        return (_instant(self.end) - _instant(self.start)).total_seconds()


def _instant(value: datetime) -> datetime:
    # Aware datetimes sharing a tzinfo compare by wall clock; UTC orders them
    # correctly across daylight saving transitions.
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class Selection:
    mode: str
    date: date | None = None
    interval_label: str | None = None
    camera_id: int | None = None


@dataclass(frozen=True)
class AggregateMetrics:
    per_category: dict[str, int]
    total: int


@dataclass(frozen=True)
class TimeSeriesPoint:
    label: str
    bucket_start: datetime
    counts: dict[str, int]
