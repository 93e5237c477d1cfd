import pytest

from trafficview.categories.mapping import (
    CATEGORIES,
    UNKNOWN,
    VEHICLE_CLASS_MAP,
    build_class_map,
    categorize,
)


@pytest.mark.parametrize(
    "label, category",
    [
        ("motorcycle", "motorcycle_tuk_tuk"),
        ("tuk-tuk", "motorcycle_tuk_tuk"),
        ("sedan", "sedan_pickup_suv"),
        ("single-pick-up", "sedan_pickup_suv"),
        ("pick-up", "sedan_pickup_suv"),
        ("van", "van"),
        ("bus", "minibus_bus"),
        ("minibus", "minibus_bus"),
        ("trailer", "truck6_truck10_trailer"),
        ("truck6", "truck6_truck10_trailer"),
        ("truck10", "truck6_truck10_trailer"),
    ],
)
def test_categorize_known_labels(label: str, category: str) -> None:
    assert categorize(label) == category


def test_categorize_unknown_label() -> None:
    assert categorize("airplane") == UNKNOWN
    assert categorize("") == UNKNOWN


def test_class_map_is_read_only() -> None:
    with pytest.raises(TypeError):
        VEHICLE_CLASS_MAP["airplane"] = "van"  # type: ignore[index]


def test_build_class_map_extends_without_touching_default() -> None:
    extended = build_class_map({"suv": "sedan_pickup_suv"})
    assert categorize("suv", extended) == "sedan_pickup_suv"
    assert categorize("suv") == UNKNOWN
    assert set(extended.values()) <= set(CATEGORIES)


def test_build_class_map_rejects_unknown_category() -> None:
    with pytest.raises(ValueError):
        build_class_map({"airplane": "aircraft"})
