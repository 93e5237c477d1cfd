from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Sequence

import pandas as pd

from trafficview.categories.mapping import CATEGORIES, CATEGORY_DISPLAY_NAMES
from trafficview.common.schemas import CountBucket, TimeSeriesPoint
from trafficview.common.utils import localize

DEFAULT_LABEL_FORMAT = "%I:%M %p"


def format_time_label(
    value: datetime, label_format: str = DEFAULT_LABEL_FORMAT, zone: tzinfo | None = None
) -> str:
    return localize(value, zone).strftime(label_format)


def build_time_series(
    buckets: Sequence[CountBucket],
    label_format: str = DEFAULT_LABEL_FORMAT,
    zone: tzinfo | None = None,
) -> list[TimeSeriesPoint]:
    """Order buckets by start time and reshape them into chart points.

    The sort is stable, so buckets sharing a start keep their input order.
    One point per bucket; nothing is summed across buckets.
    """
    ordered = sorted(buckets, key=lambda bucket: bucket.bucket_start)
    return [
        TimeSeriesPoint(
            label=format_time_label(bucket.bucket_start, label_format, zone),
            bucket_start=bucket.bucket_start,
            counts={category: bucket.count(category) for category in CATEGORIES},
        )
        for bucket in ordered
    ]


def time_series_frame(points: Sequence[TimeSeriesPoint]) -> pd.DataFrame:
    columns = ["time", "bucket_start"] + [CATEGORY_DISPLAY_NAMES[c] for c in CATEGORIES]
    if not points:
        return pd.DataFrame(columns=columns)
    records = []
    for point in points:
        record = {"time": point.label, "bucket_start": point.bucket_start}
        for category in CATEGORIES:
            record[CATEGORY_DISPLAY_NAMES[category]] = point.counts.get(category, 0)
        records.append(record)
    return pd.DataFrame.from_records(records, columns=columns)


def long_time_series_frame(points: Sequence[TimeSeriesPoint]) -> pd.DataFrame:
    frame = time_series_frame(points)
    value_columns = [CATEGORY_DISPLAY_NAMES[c] for c in CATEGORIES]
    return frame.melt(
        id_vars=["time", "bucket_start"],
        value_vars=value_columns,
        var_name="vehicle_type",
        value_name="count",
    )
