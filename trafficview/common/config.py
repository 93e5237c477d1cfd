from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import os

import yaml

from trafficview.categories.mapping import CATEGORIES


DEFAULT_CONFIG: dict[str, Any] = {
    "api": {
        "base_url": "http://localhost:8020",
        "timeout_seconds": 10.0,
    },
    "refresh": {
        "enabled": True,
        "interval_seconds": 5.0,
    },
    "detections": {
        "limit": 1000,
        "recent_limit": 50,
        "recent_minutes": 5,
    },
    "display": {
        "timezone": "UTC",
        "table_rows": 15,
        "time_label_format": "%I:%M %p",
    },
    "vehicle_class_map": {},
    "data_paths": {
        "logs_dir": "data/logs",
    },
}


@dataclass(frozen=True)
class ApiConfig:
    base_url: str = "http://localhost:8020"
    timeout_seconds: float = 10.0


@dataclass(frozen=True)
class RefreshConfig:
    enabled: bool = True
    interval_seconds: float = 5.0


@dataclass(frozen=True)
class DetectionsConfig:
    limit: int = 1000
    recent_limit: int = 50
    recent_minutes: int = 5


@dataclass(frozen=True)
class DisplayConfig:
    timezone: str = "UTC"
    table_rows: int = 15
    time_label_format: str = "%I:%M %p"


@dataclass(frozen=True)
class DataPaths:
    logs_dir: str = "data/logs"


@dataclass(frozen=True)
class AppConfig:
    api: ApiConfig = field(default_factory=ApiConfig)
    refresh: RefreshConfig = field(default_factory=RefreshConfig)
    detections: DetectionsConfig = field(default_factory=DetectionsConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    vehicle_class_map: dict[str, str] = field(default_factory=dict)
    data_paths: DataPaths = field(default_factory=DataPaths)

    @property
    def api_base_url(self) -> str:
        env_url = os.getenv("TRAFFICVIEW_API_URL")
        if env_url:
            return env_url.rstrip("/")
        return self.api.base_url.rstrip("/")


def deep_update(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_update(result[key], value)
        else:
            result[key] = value
    return result


def validate_config(config: AppConfig) -> None:
    if not config.api.base_url.strip():
        raise ValueError("api.base_url is required")
    if config.api.timeout_seconds <= 0:
        raise ValueError("api.timeout_seconds must be > 0")
    if config.refresh.interval_seconds <= 0:
        raise ValueError("refresh.interval_seconds must be > 0")
    if config.detections.limit <= 0:
        raise ValueError("detections.limit must be > 0")
    if config.detections.recent_limit <= 0:
        raise ValueError("detections.recent_limit must be > 0")
    if config.detections.recent_minutes <= 0:
        raise ValueError("detections.recent_minutes must be > 0")
    if config.display.table_rows <= 0:
        raise ValueError("display.table_rows must be > 0")
    try:
        ZoneInfo(config.display.timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"display.timezone is not a known zone: {config.display.timezone}") from exc
    for label, category in config.vehicle_class_map.items():
        if category not in CATEGORIES:
            raise ValueError(
                f"vehicle_class_map[{label!r}] must be one of {', '.join(CATEGORIES)}"
            )


def load_config(path: str | None) -> AppConfig:
    data: dict[str, Any] = {}
    if path:
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    merged = deep_update(DEFAULT_CONFIG, data)
    api_dict = merged.get("api", {})
    refresh_dict = merged.get("refresh", {})
    detections_dict = merged.get("detections", {})
    display_dict = merged.get("display", {})
    data_paths_dict = merged.get("data_paths", {})
    config = AppConfig(
        api=ApiConfig(
            base_url=str(api_dict.get("base_url", "http://localhost:8020")),
            timeout_seconds=float(api_dict.get("timeout_seconds", 10.0)),
        ),
        refresh=RefreshConfig(
            enabled=bool(refresh_dict.get("enabled", True)),
            interval_seconds=float(refresh_dict.get("interval_seconds", 5.0)),
        ),
        detections=DetectionsConfig(
            limit=int(detections_dict.get("limit", 1000)),
            recent_limit=int(detections_dict.get("recent_limit", 50)),
            recent_minutes=int(detections_dict.get("recent_minutes", 5)),
        ),
        display=DisplayConfig(
            timezone=str(display_dict.get("timezone", "UTC")),
            table_rows=int(display_dict.get("table_rows", 15)),
            time_label_format=str(display_dict.get("time_label_format", "%I:%M %p")),
        ),
        vehicle_class_map={
            str(k): str(v) for k, v in (merged.get("vehicle_class_map") or {}).items()
        },
        data_paths=DataPaths(
            logs_dir=str(data_paths_dict.get("logs_dir", "data/logs")),
        ),
    )
    validate_config(config)
    return config
