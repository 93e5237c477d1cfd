from __future__ import annotations

import argparse
import logging
import signal
import threading
from datetime import date
from pathlib import Path
from zoneinfo import ZoneInfo

from trafficview.categories.mapping import CATEGORIES, build_class_map
from trafficview.client.api import DashboardApiClient
from trafficview.common.config import AppConfig, load_config
from trafficview.common.logging import configure_logging
from trafficview.common.schemas import Selection
from trafficview.common.utils import now_in
from trafficview.pipeline.scheduler import DashboardState, MetricsSnapshot, RefreshScheduler
from trafficview.windows.intervals import FULL_DAY
from trafficview.windows.resolver import LIVE, SELECTION_MODES

logger = logging.getLogger(__name__)


def parse_date(value: str | None) -> date | None:
    if not value:
        return None
    return date.fromisoformat(value)


def build_scheduler(config: AppConfig, selection: Selection) -> RefreshScheduler:
    zone = ZoneInfo(config.display.timezone)
    state = DashboardState(
        class_map=build_class_map(config.vehicle_class_map),
        label_format=config.display.time_label_format,
        zone=zone,
    )
    client = DashboardApiClient(config.api_base_url, timeout=config.api.timeout_seconds)
    return RefreshScheduler(
        client,
        state=state,
        selection=selection,
        auto_refresh=config.refresh.enabled,
        interval_seconds=config.refresh.interval_seconds,
        detection_limit=config.detections.limit,
        recent_limit=config.detections.recent_limit,
        recent_minutes=config.detections.recent_minutes,
        clock=lambda: now_in(config.display.timezone),
    )


def log_snapshot(snapshot: MetricsSnapshot) -> None:
    if snapshot.last_error:
        logger.warning("Refresh error: %s", snapshot.last_error)
    window = snapshot.window
    per_category = ", ".join(
        f"{category}={snapshot.metrics.per_category[category]}" for category in CATEGORIES
    )
    logger.info(
        "Window %s .. %s total=%d %s buckets=%d detections=%d",
        window.start.isoformat() if window else "-",
        window.end.isoformat() if window else "-",
        snapshot.metrics.total,
        per_category,
        len(snapshot.buckets),
        len(snapshot.detections),
    )


def main() -> int:
    parser = argparse.ArgumentParser(description="Poll traffic counts and log aggregated metrics")
    parser.add_argument("--config", default=None, help="Path to config YAML")
    parser.add_argument("--mode", default=LIVE, choices=SELECTION_MODES, help="Time selection mode")
    parser.add_argument("--date", default=None, help="Day for selectDate mode (YYYY-MM-DD)")
    parser.add_argument(
        "--interval", default=FULL_DAY, help='Interval label for selectDate, e.g. "09:00 - 09:15"'
    )
    parser.add_argument("--camera-id", type=int, default=None, help="Camera identifier")
    parser.add_argument("--once", action="store_true", help="Run a single refresh cycle")
    args = parser.parse_args()

    try:
        config_path = args.config
        if config_path and not Path(config_path).exists():
            raise FileNotFoundError(f"Config not found: {config_path}")
        config = load_config(config_path)
        configure_logging(config.data_paths.logs_dir)

        selection = Selection(
            mode=args.mode,
            date=parse_date(args.date),
            interval_label=args.interval,
            camera_id=args.camera_id,
        )
        scheduler = build_scheduler(config, selection)
        if args.camera_id is None:
            scheduler.refresh_cameras()
        try:
            if args.once:
                log_snapshot(scheduler.refresh(timeout=config.api.timeout_seconds * 2))
                return 0
            stop_event = threading.Event()
            signal.signal(signal.SIGINT, lambda *_: stop_event.set())
            signal.signal(signal.SIGTERM, lambda *_: stop_event.set())
            scheduler.run_forever(stop_event, on_cycle=log_snapshot)
        finally:
            scheduler.close()
            scheduler.client.close()
        return 0
    except Exception:
        logger.exception(
            "Refresh loop failed",
            extra={"mode": args.mode, "camera_id": args.camera_id, "config": args.config},
        )
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
