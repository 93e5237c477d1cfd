from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from datetime import date

import altair as alt
import pandas as pd
import streamlit as st

from trafficview.analytics.timeseries import long_time_series_frame
from trafficview.categories.mapping import (
    CATEGORIES,
    CATEGORY_COLORS,
    CATEGORY_DISPLAY_NAMES,
)
from trafficview.common.config import AppConfig, load_config
from trafficview.common.schemas import Selection
from trafficview.common.utils import localize, now_in
from trafficview.counting.aggregation import bucket_rows, category_shares, detection_rows
from trafficview.pipeline.run import build_scheduler
from trafficview.pipeline.scheduler import MetricsSnapshot, RefreshScheduler
from trafficview.windows.intervals import INTERVALS
from trafficview.windows.resolver import (
    LAST_6_HOURS,
    LAST_24_HOURS,
    LAST_HOUR,
    LIVE,
    SELECT_DATE,
)

logger = logging.getLogger(__name__)

MODE_LABELS = {
    LIVE: "Live (1h)",
    LAST_HOUR: "Last Hour",
    LAST_6_HOURS: "Last 6 Hours",
    LAST_24_HOURS: "Last 24 Hours",
    SELECT_DATE: "Select Date",
}
ALL_CAMERAS = "All cameras"


def _is_running_with_streamlit() -> bool:
    try:
        from streamlit.runtime.scriptrunner import get_script_run_ctx

        return get_script_run_ctx() is not None
    except Exception:
        return False


def _run_streamlit() -> int:
    from streamlit.web.cli import main as stcli

    sys.argv = ["streamlit", "run", __file__, "--"] + sys.argv[1:]
    try:
        return int(stcli() or 0)
    except SystemExit as exc:
        return int(exc.code or 0)


def _get_config_path() -> str | None:
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("--config", default=os.getenv("TRAFFICVIEW_CONFIG"))
    args, _ = parser.parse_known_args()
    return args.config


def _get_scheduler(config: AppConfig) -> RefreshScheduler:
    # Kept across reruns so cycle sequence numbers keep increasing.
    if "scheduler" not in st.session_state:
        scheduler = build_scheduler(config, Selection(mode=LIVE))
        scheduler.refresh_cameras()
        st.session_state["scheduler"] = scheduler
    return st.session_state["scheduler"]


def _sidebar_selection(scheduler: RefreshScheduler, config: AppConfig) -> Selection:
    st.sidebar.header("Filters")
    mode = st.sidebar.selectbox(
        "Time range", options=list(MODE_LABELS), format_func=MODE_LABELS.get
    )
    selected_date: date | None = None
    interval_label: str | None = None
    if mode == SELECT_DATE:
        selected_date = st.sidebar.date_input(
            "Date", value=now_in(config.display.timezone).date()
        )
        interval_label = st.sidebar.selectbox("Interval", options=list(INTERVALS), index=0)

    cameras = scheduler.cameras
    camera_id: int | None
    if mode == LIVE:
        camera_id = scheduler.selection.camera_id if scheduler.selection.mode == LIVE else None
        if camera_id is None and cameras:
            camera_id = max(camera.camera_id for camera in cameras)
        st.sidebar.markdown(f"**Camera:** {camera_id if camera_id is not None else 'n/a'}")
    else:
        options = [ALL_CAMERAS] + [f"{camera.camera_id}: {camera.name}" for camera in cameras]
        choice = st.sidebar.selectbox("Camera", options=options)
        camera_id = None if choice == ALL_CAMERAS else int(choice.split(":")[0])

    scheduler.auto_refresh = st.sidebar.checkbox(
        f"Auto refresh ({config.refresh.interval_seconds:g}s)", value=config.refresh.enabled
    )
    if st.sidebar.button("Refresh cameras"):
        scheduler.refresh_cameras()
    return Selection(
        mode=mode, date=selected_date, interval_label=interval_label, camera_id=camera_id
    )


def _render_metrics(snapshot: MetricsSnapshot) -> None:
    columns = st.columns(len(CATEGORIES) + 1)
    columns[0].metric("Total Vehicles", f"{snapshot.metrics.total:,}")
    for column, category in zip(columns[1:], CATEGORIES):
        column.metric(CATEGORY_DISPLAY_NAMES[category], f"{snapshot.metrics.per_category[category]:,}")


def _render_charts(snapshot: MetricsSnapshot) -> None:
    trend_col, share_col = st.columns([2, 1])
    names = [CATEGORY_DISPLAY_NAMES[c] for c in CATEGORIES]
    colors = [CATEGORY_COLORS[c] for c in CATEGORIES]
    with trend_col:
        st.subheader("Traffic Flow")
        if snapshot.series:
            frame = long_time_series_frame(snapshot.series)
            chart = (
                alt.Chart(frame)
                .mark_area(opacity=0.6)
                .encode(
                    x=alt.X("bucket_start:T", title="Time"),
                    y=alt.Y("count:Q", stack=True, title="Vehicles"),
                    color=alt.Color(
                        "vehicle_type:N", scale=alt.Scale(domain=names, range=colors)
                    ),
                    tooltip=["time:N", "vehicle_type:N", "count:Q"],
                )
            )
            st.altair_chart(chart, use_container_width=True)
        else:
            st.info("No time series data available.")
    with share_col:
        st.subheader("Vehicle Distribution")
        shares = category_shares(snapshot.metrics)
        if shares:
            share_frame = pd.DataFrame(shares, columns=["vehicle_type", "count"])
            pie = (
                alt.Chart(share_frame)
                .mark_arc()
                .encode(
                    theta="count:Q",
                    color=alt.Color(
                        "vehicle_type:N", scale=alt.Scale(domain=names, range=colors)
                    ),
                    tooltip=["vehicle_type:N", "count:Q"],
                )
            )
            st.altair_chart(pie, use_container_width=True)
        else:
            st.info("No vehicles detected.")


def _render_tables(snapshot: MetricsSnapshot, config: AppConfig, scheduler: RefreshScheduler) -> None:
    if snapshot.selection and snapshot.selection.mode == LIVE and snapshot.recent_detections:
        st.subheader(f"Live Detections (Last {scheduler.recent_minutes} Minutes)")
        rows = detection_rows(snapshot.recent_detections, scheduler.recent_limit)
        st.dataframe(
            pd.DataFrame(
                [
                    {
                        "Time": localize(row.timestamp, scheduler.state.zone).strftime("%H:%M:%S"),
                        "Vehicle Class": row.vehicle_class,
                        "Confidence": row.confidence,
                        "Direction": row.direction,
                    }
                    for row in rows
                ]
            ),
            use_container_width=True,
            hide_index=True,
        )

    st.subheader("Detailed Analytics")
    rows = bucket_rows(snapshot.buckets, config.display.table_rows)
    if not rows:
        st.info("No data available.")
        return
    table = pd.DataFrame(
        [
            {
                "Time Period": localize(row.bucket_start, scheduler.state.zone).strftime(
                    "%Y-%m-%d %H:%M:%S"
                ),
                **{CATEGORY_DISPLAY_NAMES[c]: row.counts[c] for c in CATEGORIES},
                "Total": row.total,
            }
            for row in rows
        ]
    )
    st.dataframe(table, use_container_width=True, hide_index=True)


def main() -> int:
    try:
        if not _is_running_with_streamlit():
            return _run_streamlit()
        st.set_page_config(page_title="Traffic AI", layout="wide")
        config = load_config(_get_config_path())
        scheduler = _get_scheduler(config)

        st.title("Traffic AI - Real-time Analytics")
        selection = _sidebar_selection(scheduler, config)
        scheduler.set_selection(selection)

        snapshot = scheduler.refresh(timeout=config.api.timeout_seconds * 2)
        if snapshot.last_error:
            st.error(snapshot.last_error)
        if snapshot.window:
            st.caption(
                f"Window: {localize(snapshot.window.start, scheduler.state.zone):%Y-%m-%d %H:%M:%S}"
                f" to {localize(snapshot.window.end, scheduler.state.zone):%Y-%m-%d %H:%M:%S}"
            )

        _render_metrics(snapshot)
        _render_charts(snapshot)
        _render_tables(snapshot, config, scheduler)

        if scheduler.should_poll():
            time.sleep(scheduler.interval_seconds)
            st.rerun()
        return 0
    except Exception:
        logger.exception("Dashboard failed", extra={"config": _get_config_path()})
        return 1


if __name__ == "__main__":
    if _is_running_with_streamlit():
        main()
    else:
        raise SystemExit(main())
