from __future__ import annotations

import itertools
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, tzinfo
from typing import Any, Callable, Mapping

from trafficview.analytics.timeseries import DEFAULT_LABEL_FORMAT, build_time_series
from trafficview.categories.mapping import VEHICLE_CLASS_MAP
from trafficview.client.api import DashboardApiClient, FetchResult, latest_camera
from trafficview.common.schemas import (
    AggregateMetrics,
    Camera,
    CountBucket,
    DetectionEvent,
    Selection,
    TimeSeriesPoint,
    TimeWindow,
)
from trafficview.common.utils import elapsed_before, utc_now
from trafficview.counting.aggregation import select_metrics
from trafficview.windows.resolver import LIVE, resolve_window

logger = logging.getLogger(__name__)

COUNTS = "counts"
DETECTIONS = "detections"
RECENT = "recent"
FETCH_KINDS = (COUNTS, DETECTIONS, RECENT)


@dataclass(frozen=True)
class MetricsSnapshot:
    selection: Selection | None
    window: TimeWindow | None
    buckets: list[CountBucket]
    detections: list[DetectionEvent]
    recent_detections: list[DetectionEvent]
    metrics: AggregateMetrics
    series: list[TimeSeriesPoint]
    sequences: dict[str, int]
    last_error: str | None


@dataclass
class _Slot:
    sequence: int = -1
    selection: Selection | None = None
    window: TimeWindow | None = None
    items: list[Any] = field(default_factory=list)


class DashboardState:
    """Single-writer register holding the latest applied fetch results.

    Each fetch kind keeps the highest cycle sequence applied so far; a result
    from an older cycle that resolves late is dropped instead of overwriting
    newer data. Metrics are derived on every ``snapshot`` call, never stored.
    """

    def __init__(
        self,
        class_map: Mapping[str, str] = VEHICLE_CLASS_MAP,
        label_format: str = DEFAULT_LABEL_FORMAT,
        zone: tzinfo | None = None,
    ) -> None:
        self.class_map = class_map
        self.label_format = label_format
        self.zone = zone
        self._lock = threading.Lock()
        self._slots: dict[str, _Slot] = {kind: _Slot() for kind in FETCH_KINDS}
        self._last_error: str | None = None

    def apply(
        self,
        kind: str,
        sequence: int,
        selection: Selection,
        window: TimeWindow,
        result: FetchResult[Any],
    ) -> bool:
        if kind not in self._slots:
            raise ValueError(f"Unknown fetch kind: {kind!r}")
        with self._lock:
            slot = self._slots[kind]
            if sequence < slot.sequence:
                logger.debug(
                    "Discarding stale %s result (cycle %d < %d)", kind, sequence, slot.sequence
                )
                return False
            slot.sequence = sequence
            slot.selection = selection
            slot.window = window
            slot.items = list(result.items)
            if result.error:
                self._last_error = result.error
            return True

    def sequence(self, kind: str) -> int:
        with self._lock:
            return self._slots[kind].sequence

    @property
    def last_error(self) -> str | None:
        with self._lock:
            return self._last_error

    def clear_error(self) -> None:
        with self._lock:
            self._last_error = None

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            counts = self._slots[COUNTS]
            detections = list(self._slots[DETECTIONS].items)
            recent = list(self._slots[RECENT].items)
            buckets = list(counts.items)
            selection = counts.selection
            window = counts.window
            sequences = {kind: slot.sequence for kind, slot in self._slots.items()}
            last_error = self._last_error
        mode = selection.mode if selection else LIVE
        return MetricsSnapshot(
            selection=selection,
            window=window,
            buckets=buckets,
            detections=detections,
            recent_detections=recent,
            metrics=select_metrics(mode, buckets, detections, self.class_map),
            series=build_time_series(buckets, self.label_format, self.zone),
            sequences=sequences,
            last_error=last_error,
        )


class RefreshScheduler:
    """Drives refresh cycles: capture ``now``, resolve the window, fetch.

    In live mode with auto-refresh on, cycles repeat on a fixed cadence.
    In-flight fetches are never cancelled, sequencing in ``DashboardState``
    keeps late results from older cycles out. Polling does not queue a new
    fetch for a kind while that kind's previous fetch is still running.
    """

    def __init__(
        self,
        client: DashboardApiClient,
        state: DashboardState | None = None,
        selection: Selection | None = None,
        auto_refresh: bool = True,
        interval_seconds: float = 5.0,
        detection_limit: int = 1000,
        recent_limit: int = 50,
        recent_minutes: int = 5,
        clock: Callable[[], datetime] = utc_now,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self.client = client
        self.state = state or DashboardState()
        self.auto_refresh = auto_refresh
        self.interval_seconds = interval_seconds
        self.detection_limit = detection_limit
        self.recent_limit = recent_limit
        self.recent_minutes = recent_minutes
        self.clock = clock
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=len(FETCH_KINDS) * 2, thread_name_prefix="trafficview-fetch"
        )
        self._selection_lock = threading.Lock()
        self._selection = selection or Selection(mode=LIVE)
        self._sequence = itertools.count()
        self._in_flight: dict[str, Future] = {}
        self._in_flight_lock = threading.Lock()
        self.cameras: list[Camera] = []

    @property
    def selection(self) -> Selection:
        with self._selection_lock:
            return self._selection

    def set_selection(self, selection: Selection) -> None:
        with self._selection_lock:
            self._selection = selection

    def should_poll(self) -> bool:
        return self.auto_refresh and self.selection.mode == LIVE

    def refresh_cameras(self) -> list[Camera]:
        """Reload the camera list; live selections follow the newest camera."""
        result = self.client.get_cameras()
        if result.error:
            logger.warning("Camera refresh failed: %s", result.error)
        self.cameras = result.items
        selection = self.selection
        if selection.mode == LIVE:
            newest = latest_camera(self.cameras)
            if newest is not None and newest.camera_id != selection.camera_id:
                self.set_selection(replace(selection, camera_id=newest.camera_id))
        return self.cameras

    def run_cycle(self, now: datetime | None = None, skip_busy: bool = False) -> list[Future]:
        """Start one refresh cycle and return the futures of its fetches.

        With ``skip_busy`` a kind whose fetch from an earlier cycle is still
        running is not submitted again; the running fetch is left alone.
        """
        sequence = next(self._sequence)
        selection = self.selection
        now = now or self.clock()
        window = resolve_window(selection, now)
        self.state.clear_error()
        logger.debug(
            "Cycle %d: mode=%s window=%s..%s camera=%s",
            sequence,
            selection.mode,
            window.start.isoformat(),
            window.end.isoformat(),
            selection.camera_id,
        )
        futures = [
            self._submit(
                COUNTS, sequence, selection, window, skip_busy,
                self.client.get_counts, window, selection.camera_id,
            )
        ]
        if selection.mode == LIVE:
            futures.append(
                self._submit(
                    DETECTIONS, sequence, selection, window, skip_busy,
                    self.client.get_detections, window, selection.camera_id, self.detection_limit,
                )
            )
            recent_window = TimeWindow(
                start=elapsed_before(now, timedelta(minutes=self.recent_minutes)), end=now
            )
            futures.append(
                self._submit(
                    RECENT, sequence, selection, recent_window, skip_busy,
                    self.client.get_detections, recent_window, selection.camera_id,
                    self.recent_limit,
                )
            )
        else:
            # Outside live mode detections are not displayed; applying an empty
            # result at this sequence also retires late live responses.
            self.state.apply(DETECTIONS, sequence, selection, window, FetchResult())
            self.state.apply(RECENT, sequence, selection, window, FetchResult())
        return [future for future in futures if future is not None]

    def refresh(self, now: datetime | None = None, timeout: float | None = None) -> MetricsSnapshot:
        """Run one cycle and wait for its fetches (manual refresh)."""
        wait(self.run_cycle(now), timeout=timeout)
        return self.state.snapshot()

    def run_forever(
        self,
        stop_event: threading.Event,
        on_cycle: Callable[[MetricsSnapshot], None] | None = None,
    ) -> None:
        next_tick = time.monotonic()
        while not stop_event.is_set():
            futures = self.run_cycle(skip_busy=True)
            if on_cycle is not None:
                wait(futures, timeout=self.interval_seconds)
                on_cycle(self.state.snapshot())
            if not self.should_poll():
                break
            next_tick += self.interval_seconds
            if stop_event.wait(max(0.0, next_tick - time.monotonic())):
                break

    def close(self) -> None:
        if self._owns_executor:
            self.executor.shutdown(wait=False, cancel_futures=False)

    def _submit(
        self,
        kind: str,
        sequence: int,
        selection: Selection,
        window: TimeWindow,
        skip_busy: bool,
        fetch: Callable[..., FetchResult[Any]],
        *args: Any,
    ) -> Future | None:
        with self._in_flight_lock:
            previous = self._in_flight.get(kind)
            if skip_busy and previous is not None and not previous.done():
                logger.debug("Skipping %s fetch in cycle %d, previous fetch still running", kind, sequence)
                return None
            future = self.executor.submit(
                self._fetch_and_apply, kind, sequence, selection, window, fetch, *args
            )
            self._in_flight[kind] = future
        return future

    def _fetch_and_apply(
        self,
        kind: str,
        sequence: int,
        selection: Selection,
        window: TimeWindow,
        fetch: Callable[..., FetchResult[Any]],
        *args: Any,
    ) -> bool:
        try:
            result = fetch(*args)
        except Exception as exc:
            logger.exception("%s fetch crashed in cycle %d", kind, sequence)
            result = FetchResult(items=[], error=f"{kind} failed: {exc}")
        return self.state.apply(kind, sequence, selection, window, result)
