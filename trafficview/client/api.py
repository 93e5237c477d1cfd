from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Sequence, TypeVar

import requests

from trafficview.common.schemas import Camera, CountBucket, DetectionEvent, TimeWindow
from trafficview.common.utils import to_api_iso

logger = logging.getLogger(__name__)

T = TypeVar("T")

NO_CAMERAS_MESSAGE = "No cameras available"


class TransportError(RuntimeError):
    """Network failure, non-200 status or an unreadable payload."""


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    items: list[T] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class DashboardApiClient:
    """Read-only client for the cameras, counts and detections endpoints.

    Failures never raise past this class: they are logged, kept as
    ``last_error`` and turned into empty results. There are no retries; the
    next refresh cycle asks again.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self._error_lock = threading.Lock()
        self._last_error: str | None = None

    @property
    def last_error(self) -> str | None:
        with self._error_lock:
            return self._last_error

    def clear_error(self) -> None:
        with self._error_lock:
            self._last_error = None

    def _record_error(self, message: str) -> None:
        with self._error_lock:
            self._last_error = message

    def _get(self, endpoint: str, params: dict[str, str] | None = None) -> list[dict[str, Any]]:
        try:
            response = self.session.get(
                f"{self.base_url}{endpoint}",
                params=params or {},
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(str(exc) or exc.__class__.__name__) from exc
        if response.status_code != 200:
            raise TransportError(f"HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError("invalid JSON response") from exc
        if not isinstance(payload, list):
            raise TransportError(f"expected a JSON array, got {type(payload).__name__}")
        return payload

    def _fetch(
        self,
        endpoint: str,
        params: dict[str, str] | None,
        parse: Callable[[dict[str, Any]], T],
    ) -> FetchResult[T]:
        try:
            rows = self._get(endpoint, params)
            try:
                items = [parse(row) for row in rows]
            except (KeyError, TypeError, ValueError) as exc:
                raise TransportError(f"invalid payload: {exc}") from exc
        except TransportError as exc:
            message = f"{endpoint} failed: {exc}"
            logger.warning("%s", message, extra={"endpoint": endpoint, "params": params})
            self._record_error(message)
            return FetchResult(items=[], error=message)
        return FetchResult(items=items)

    def get_cameras(self) -> FetchResult[Camera]:
        result = self._fetch("/cameras", None, Camera.from_api)
        if result.ok and not result.items:
            self._record_error(NO_CAMERAS_MESSAGE)
            return FetchResult(items=[], error=NO_CAMERAS_MESSAGE)
        return result

    def get_counts(self, window: TimeWindow, camera_id: int | None = None) -> FetchResult[CountBucket]:
        return self._fetch("/counts", _window_params(window, camera_id), CountBucket.from_api)

    def get_detections(
        self, window: TimeWindow, camera_id: int | None = None, limit: int = 1000
    ) -> FetchResult[DetectionEvent]:
        params = {"limit": str(limit)}
        params.update(_window_params(window, camera_id))
        return self._fetch("/detections", params, DetectionEvent.from_api)

    def fetch_cameras(self) -> list[Camera]:
        return self.get_cameras().items

    def fetch_counts(self, window: TimeWindow, camera_id: int | None = None) -> list[CountBucket]:
        return self.get_counts(window, camera_id).items

    def fetch_detections(
        self, window: TimeWindow, camera_id: int | None = None, limit: int = 1000
    ) -> list[DetectionEvent]:
        return self.get_detections(window, camera_id, limit).items

    def close(self) -> None:
        self.session.close()


def _window_params(window: TimeWindow, camera_id: int | None) -> dict[str, str]:
    params = {
        "from_time": to_api_iso(window.start),
        "to_time": to_api_iso(window.end),
    }
    if camera_id is not None:
        params["camera_id"] = str(camera_id)
    return params


def latest_camera(cameras: Sequence[Camera]) -> Camera | None:
    if not cameras:
        return None
    return max(cameras, key=lambda camera: camera.camera_id)
