from datetime import datetime, timezone
from urllib.parse import parse_qs, urlparse

import requests

from trafficview.client.api import NO_CAMERAS_MESSAGE, DashboardApiClient, latest_camera
from trafficview.common.schemas import Camera, TimeWindow

BASE_URL = "http://counts.test:8020"
WINDOW = TimeWindow(
    start=datetime(2024, 1, 1, 11, 0, tzinfo=timezone.utc),
    end=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
)


def _query(request) -> dict[str, list[str]]:
    return parse_qs(urlparse(request.url).query)


def test_fetch_cameras(requests_mock):
    requests_mock.get(
        f"{BASE_URL}/cameras",
        json=[{"camera_id": 1, "name": "North"}, {"camera_id": 4, "name": "Bridge"}],
    )
    client = DashboardApiClient(BASE_URL)
    cameras = client.fetch_cameras()
    assert cameras == [Camera(1, "North"), Camera(4, "Bridge")]
    assert latest_camera(cameras) == Camera(4, "Bridge")
    assert client.last_error is None


def test_empty_camera_list_records_error(requests_mock):
    requests_mock.get(f"{BASE_URL}/cameras", json=[])
    client = DashboardApiClient(BASE_URL)
    assert client.fetch_cameras() == []
    assert client.last_error == NO_CAMERAS_MESSAGE
    assert latest_camera([]) is None


def test_fetch_counts_sends_window_and_camera(requests_mock):
    requests_mock.get(
        f"{BASE_URL}/counts",
        json=[
            {
                "start_ts": "2024-01-01T11:15:00+00:00",
                "motorcycle_tuk_tuk": 2,
                "sedan_pickup_suv": 1,
                "van": 0,
                "minibus_bus": None,
                "truck6_truck10_trailer": 3,
            }
        ],
    )
    client = DashboardApiClient(BASE_URL)
    buckets = client.fetch_counts(WINDOW, camera_id=7)
    query = _query(requests_mock.last_request)
    assert query["from_time"] == ["2024-01-01T11:00:00.000Z"]
    assert query["to_time"] == ["2024-01-01T12:00:00.000Z"]
    assert query["camera_id"] == ["7"]
    assert len(buckets) == 1
    assert buckets[0].counts["minibus_bus"] == 0
    assert buckets[0].total == 6


def test_fetch_counts_omits_camera_when_unset(requests_mock):
    requests_mock.get(f"{BASE_URL}/counts", json=[])
    DashboardApiClient(BASE_URL).fetch_counts(WINDOW)
    assert "camera_id" not in _query(requests_mock.last_request)


def test_fetch_detections_sends_limit(requests_mock):
    requests_mock.get(
        f"{BASE_URL}/detections",
        json=[
            {"ts": "2024-01-01T11:30:00Z", "vehicle_class": "van", "conf": 0.91, "direction": "in"},
            {"ts": "2024-01-01T11:31:00Z", "vehicle_class": "airplane"},
        ],
    )
    events = DashboardApiClient(BASE_URL).fetch_detections(WINDOW, limit=50)
    assert _query(requests_mock.last_request)["limit"] == ["50"]
    assert events[0].confidence == 0.91
    assert events[0].direction == "in"
    assert events[1].confidence is None
    assert events[1].direction is None


def test_non_200_degrades_to_empty_list(requests_mock):
    requests_mock.get(f"{BASE_URL}/counts", status_code=500)
    client = DashboardApiClient(BASE_URL)
    result = client.get_counts(WINDOW)
    assert result.items == []
    assert result.error == "/counts failed: HTTP 500"
    assert client.last_error == "/counts failed: HTTP 500"


def test_network_failure_degrades_to_empty_list(requests_mock):
    requests_mock.get(f"{BASE_URL}/detections", exc=requests.exceptions.ConnectTimeout)
    client = DashboardApiClient(BASE_URL)
    assert client.fetch_detections(WINDOW) == []
    assert client.last_error.startswith("/detections failed:")


def test_latest_error_overwrites_previous(requests_mock):
    requests_mock.get(f"{BASE_URL}/counts", status_code=503)
    requests_mock.get(f"{BASE_URL}/detections", text="not json")
    client = DashboardApiClient(BASE_URL)
    client.fetch_counts(WINDOW)
    client.fetch_detections(WINDOW)
    assert client.last_error == "/detections failed: invalid JSON response"


def test_malformed_rows_degrade_to_empty_list(requests_mock):
    requests_mock.get(f"{BASE_URL}/counts", json=[{"van": 1}])
    client = DashboardApiClient(BASE_URL)
    assert client.fetch_counts(WINDOW) == []
    assert client.last_error.startswith("/counts failed: invalid payload")
