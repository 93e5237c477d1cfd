from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Mapping, Sequence

from trafficview.categories.mapping import (
    CATEGORIES,
    CATEGORY_DISPLAY_NAMES,
    UNKNOWN,
    VEHICLE_CLASS_MAP,
    categorize,
    empty_counts,
)
from trafficview.common.schemas import AggregateMetrics, CountBucket, DetectionEvent
from trafficview.windows.resolver import LIVE


LIVE_AGGREGATION = "live"
WINDOWED_AGGREGATION = "windowed"
AGGREGATION_MODES = (LIVE_AGGREGATION, WINDOWED_AGGREGATION)


@dataclass(frozen=True)
class BucketRow:
    bucket_start: datetime
    counts: dict[str, int]
    total: int


@dataclass(frozen=True)
class DetectionRow:
    timestamp: datetime
    vehicle_class: str
    confidence: str
    direction: str


def aggregation_mode_for(selection_mode: str) -> str:
    return LIVE_AGGREGATION if selection_mode == LIVE else WINDOWED_AGGREGATION


def aggregate_detections(
    events: Sequence[DetectionEvent], class_map: Mapping[str, str] = VEHICLE_CLASS_MAP
) -> AggregateMetrics:
    # total counts every event received, unknown labels included, while the
    # per-category sums leave unknowns out.
    counts = empty_counts()
    for event in events:
        category = categorize(event.raw_class, class_map)
        if category == UNKNOWN:
            continue
        counts[category] += 1
    return AggregateMetrics(per_category=counts, total=len(events))


def aggregate_buckets(buckets: Iterable[CountBucket]) -> AggregateMetrics:
    counts = empty_counts()
    for bucket in buckets:
        for category in CATEGORIES:
            counts[category] += bucket.count(category)
    return AggregateMetrics(per_category=counts, total=sum(counts.values()))


def aggregate(
    mode: str,
    data: Sequence[DetectionEvent] | Sequence[CountBucket],
    class_map: Mapping[str, str] = VEHICLE_CLASS_MAP,
) -> AggregateMetrics:
    if mode == LIVE_AGGREGATION:
        return aggregate_detections(data, class_map)  # type: ignore[arg-type]
    if mode == WINDOWED_AGGREGATION:
        return aggregate_buckets(data)  # type: ignore[arg-type]
    raise ValueError(f"Unknown aggregation mode: {mode!r}")


def select_metrics(
    selection_mode: str,
    buckets: Sequence[CountBucket],
    detections: Sequence[DetectionEvent],
    class_map: Mapping[str, str] = VEHICLE_CLASS_MAP,
) -> AggregateMetrics:
    """Pick the data source the dashboard cards are computed from.

    Live selections use detections, falling back to the bucketed counts for
    the same window while no detection has arrived yet.
    """
    mode = aggregation_mode_for(selection_mode)
    if mode == LIVE_AGGREGATION and detections:
        return aggregate_detections(detections, class_map)
    return aggregate_buckets(buckets)


def category_shares(metrics: AggregateMetrics) -> list[tuple[str, int]]:
    return [
        (CATEGORY_DISPLAY_NAMES[category], metrics.per_category[category])
        for category in CATEGORIES
        if metrics.per_category.get(category, 0) > 0
    ]


def bucket_rows(buckets: Sequence[CountBucket], limit: int = 15) -> list[BucketRow]:
    if limit <= 0:
        return []
    rows: list[BucketRow] = []
    for bucket in buckets[-limit:]:
        counts = {category: bucket.count(category) for category in CATEGORIES}
        rows.append(
            BucketRow(bucket_start=bucket.bucket_start, counts=counts, total=sum(counts.values()))
        )
    return rows


def detection_rows(events: Sequence[DetectionEvent], limit: int = 50) -> list[DetectionRow]:
    rows: list[DetectionRow] = []
    for event in events[: max(0, limit)]:
        confidence = f"{event.confidence * 100:.1f}%" if event.confidence else "-"
        rows.append(
            DetectionRow(
                timestamp=event.timestamp,
                vehicle_class=event.raw_class,
                confidence=confidence,
                direction=event.direction or "-",
            )
        )
    return rows
