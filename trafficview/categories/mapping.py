from __future__ import annotations

from types import MappingProxyType
from typing import Mapping


CATEGORIES: tuple[str, ...] = (
    "motorcycle_tuk_tuk",
    "sedan_pickup_suv",
    "van",
    "minibus_bus",
    "truck6_truck10_trailer",
)
UNKNOWN = "unknown"

VEHICLE_CLASS_MAP: Mapping[str, str] = MappingProxyType(
    {
        "motorcycle": "motorcycle_tuk_tuk",
        "tuk-tuk": "motorcycle_tuk_tuk",
        "sedan": "sedan_pickup_suv",
        "single-pick-up": "sedan_pickup_suv",
        "pick-up": "sedan_pickup_suv",
        "van": "van",
        "bus": "minibus_bus",
        "minibus": "minibus_bus",
        "trailer": "truck6_truck10_trailer",
        "truck6": "truck6_truck10_trailer",
        "truck10": "truck6_truck10_trailer",
    }
)

CATEGORY_DISPLAY_NAMES: Mapping[str, str] = MappingProxyType(
    {
        "motorcycle_tuk_tuk": "Motorcycles",
        "sedan_pickup_suv": "Cars",
        "van": "Vans",
        "minibus_bus": "Buses",
        "truck6_truck10_trailer": "Trucks",
    }
)

CATEGORY_COLORS: Mapping[str, str] = MappingProxyType(
    {
        "motorcycle_tuk_tuk": "#FF6B35",
        "sedan_pickup_suv": "#004E89",
        "van": "#F7931E",
        "minibus_bus": "#06A77D",
        "truck6_truck10_trailer": "#D62828",
    }
)


def categorize(raw_class: str, class_map: Mapping[str, str] = VEHICLE_CLASS_MAP) -> str:
    """Return the canonical category for a raw label, or ``UNKNOWN``.

    Unrecognized labels are not an error: callers drop ``UNKNOWN`` from
    per-category sums so new upstream labels undercount instead of failing.
    """
    return class_map.get(raw_class, UNKNOWN)


def build_class_map(extra: Mapping[str, str] | None = None) -> Mapping[str, str]:
    if not extra:
        return VEHICLE_CLASS_MAP
    merged = dict(VEHICLE_CLASS_MAP)
    for label, category in extra.items():
        if category not in CATEGORIES:
            raise ValueError(f"vehicle_class_map target {category!r} is not a known category")
        merged[label] = category
    return MappingProxyType(merged)


def empty_counts() -> dict[str, int]:
    return {category: 0 for category in CATEGORIES}
