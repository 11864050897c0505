import threading
import time
import uuid
from typing import Dict, Iterator

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from datastore.dataset_store import DatasetStore
from datastore.narrative_table import NarrativeTable
from models.records import DEFAULT_SAMPLES, Dataset
from services.monitor import MonitorService, build_dataset, build_default_monitor
from services.parser import parse_csv_bytes


class EchoNarrativeClient:
    def request_analysis(self, dataset: Dataset) -> str:
        return f"Analysis of {len(dataset)} samples."

    def close(self) -> None:
        pass


@pytest.fixture
def api_client(monkeypatch) -> Iterator[TestClient]:
    monitors: Dict[int, MonitorService] = {}

    def build_test_monitor(workers: int | None = None) -> MonitorService:
        worker_count = workers or 1
        monitor = monitors.get(worker_count)
        if monitor is None:
            monitor = MonitorService(
                store=DatasetStore(build_dataset(DEFAULT_SAMPLES)),
                narratives=NarrativeTable(),
                narrative_client=EchoNarrativeClient(),  # type: ignore[arg-type]
                workers=worker_count,
            )
            monitors[worker_count] = monitor
        return monitor

    def cache_clear() -> None:
        while monitors:
            _, monitor = monitors.popitem()
            monitor.shutdown()

    build_test_monitor.cache_clear = cache_clear  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_monitor", build_test_monitor)
    monkeypatch.setattr("app.api.build_default_monitor", build_test_monitor)

    app = create_app()
    with TestClient(app) as client:
        yield client

    cache_clear()


def test_lifespan_shuts_down_monitor_and_clears_cache() -> None:
    app = create_app()

    with TestClient(app):
        monitor_during = build_default_monitor()
        assert monitor_during.executor._shutdown is False

    monitor_after = build_default_monitor()
    try:
        assert monitor_after is not monitor_during
        assert monitor_during.executor._shutdown is True
    finally:
        monitor_after.shutdown()
        build_default_monitor.cache_clear()


def _poll_narrative(client: TestClient, narrative_id: str, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    last_payload: dict | None = None
    while time.monotonic() < deadline:
        response = client.get(f"/narratives/{narrative_id}")
        assert response.status_code == 200
        payload = response.json()
        last_payload = payload
        if payload["status"] != "pending":
            return payload
        time.sleep(0.05)
    pytest.fail(f"Narrative {narrative_id} did not complete: {last_payload}")


def test_current_dataset_starts_with_default_data(api_client: TestClient) -> None:
    response = api_client.get("/datasets/current")

    assert response.status_code == 200
    payload = response.json()
    assert payload["source"] == "default"
    assert payload["sample_count"] == 10
    assert payload["samples"][0]["time"] == "10:00"
    assert payload["samples"][0]["hardness"] == 0.5
    assert payload["samples"][0]["hardness_normalized"] == pytest.approx(0.5)


def test_upload_replaces_dataset_and_verdict(api_client: TestClient) -> None:
    csv_content = "time,ph,turbidity,hardness\n12:00,7.0,1.0,0.2\n12:10,9.0,2.0,0.9\n"

    response = api_client.post(
        "/datasets",
        files={"file": ("readings.csv", csv_content, "text/csv")},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["source"] == "readings.csv"
    assert payload["generation"] == 1
    assert [s["hardness_normalized"] for s in payload["samples"]] == [0.0, 1.0]

    verdict = api_client.get("/verdict").json()
    assert verdict["category"] == "Terrible"
    assert verdict["score"] == 0


def test_upload_with_bad_cells_serializes_nan_as_null(api_client: TestClient) -> None:
    csv_content = "ph,turbidity,hardness\nn/a,1.0,0.2\n7.0,1.0,0.4\n"

    response = api_client.post(
        "/datasets",
        files={"file": ("bad.csv", csv_content, "text/csv")},
    )

    assert response.status_code == 200
    first = response.json()["samples"][0]
    assert first["time"] == "T0"
    assert first["ph"] is None


def test_invalid_upload_returns_bad_request_and_keeps_dataset(api_client: TestClient) -> None:
    response = api_client.post(
        "/datasets",
        files={"file": ("broken.csv", "time,ph\n10:00,7.0\n", "text/csv")},
    )

    assert response.status_code == 400
    assert "missing required columns" in response.json()["detail"]
    assert api_client.get("/datasets/current").json()["source"] == "default"


def test_empty_upload_returns_bad_request(api_client: TestClient) -> None:
    response = api_client.post(
        "/datasets",
        files={"file": ("empty.csv", b"", "text/csv")},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Uploaded file is empty."


def test_upload_without_file_is_a_noop(api_client: TestClient) -> None:
    response = api_client.post("/datasets")

    assert response.status_code == 200
    assert response.json()["source"] == "default"
    assert response.json()["generation"] == 0


def test_verdict_for_default_dataset(api_client: TestClient) -> None:
    response = api_client.get("/verdict")

    assert response.status_code == 200
    assert response.json() == {
        "category": "Excellent",
        "score": 3,
        "hardness_basis": "raw",
        "message": "Based on the latest data, the water quality is Excellent.",
    }


def test_predict_then_poll_narrative(api_client: TestClient) -> None:
    response = api_client.post("/predict")

    assert response.status_code == 202
    payload = response.json()
    assert payload["verdict"]["category"] == "Excellent"

    narrative = _poll_narrative(api_client, payload["narrative_id"])
    assert narrative["status"] == "completed"
    assert narrative["analysis"] == "Analysis of 10 samples."

    listing = api_client.get("/narratives").json()
    assert [item["narrative_id"] for item in listing] == [payload["narrative_id"]]


def test_get_missing_narrative_returns_not_found(api_client: TestClient) -> None:
    missing_id = str(uuid.uuid4())
    response = api_client.get(f"/narratives/{missing_id}")

    assert response.status_code == 404
    assert missing_id in response.json()["detail"]


def test_health_endpoints(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}
    assert api_client.get("/").json()["status"] == "ok"


def test_overlapping_uploads_keep_the_newest_dataset(api_client: TestClient, monkeypatch) -> None:
    slow_started = threading.Event()
    release_slow = threading.Event()

    def parse_with_gate(data: bytes):
        if b"slow" in data:
            slow_started.set()
            assert release_slow.wait(timeout=5)
        return parse_csv_bytes(data)

    monkeypatch.setattr("services.monitor.parse_csv_bytes", parse_with_gate)

    slow_response: dict = {}

    def upload_slow() -> None:
        response = api_client.post(
            "/datasets",
            files={"file": ("slow.csv", "time,ph,turbidity,hardness\nslow,7.0,1.0,0.2\n", "text/csv")},
        )
        slow_response["status"] = response.status_code
        slow_response["body"] = response.json()

    worker = threading.Thread(target=upload_slow)
    worker.start()
    try:
        assert slow_started.wait(timeout=5)

        fast = api_client.post(
            "/datasets",
            files={"file": ("fast.csv", "time,ph,turbidity,hardness\n12:00,9.0,2.0,0.9\n", "text/csv")},
        )
        assert fast.status_code == 200
        assert fast.json()["source"] == "fast.csv"
        assert fast.json()["generation"] == 2
    finally:
        release_slow.set()
        worker.join(timeout=5)

    assert slow_response["status"] == 200
    assert slow_response["body"]["source"] == "fast.csv"
    current = api_client.get("/datasets/current").json()
    assert current["source"] == "fast.csv"
    assert current["generation"] == 2
