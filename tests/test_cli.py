from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import pytest
from typer.testing import CliRunner

from cli.app import app

VERDICT = {
    "category": "Good",
    "score": 2,
    "hardness_basis": "raw",
    "message": "Based on the latest data, the water quality is Good.",
}


class StubClient:
    def __init__(self, config) -> None:
        self.config = config
        self.uploaded_path: Path | None = None
        self.poll_calls: List[tuple[str, float, float]] = []
        self.narrative_payload: Dict[str, Any] = {
            "narrative_id": "narr-1",
            "status": "completed",
            "requested_at": "2024-01-01T00:00:00Z",
            "completed_at": "2024-01-01T00:00:03Z",
            "analysis": "The water is potable.",
            "error": None,
        }
        self.closed = False

    def upload_dataset(self, path: Path) -> Dict[str, Any]:
        self.uploaded_path = path
        return {"source": path.name, "generation": 3, "sample_count": 2, "samples": []}

    def get_dataset(self) -> Dict[str, Any]:
        return {
            "source": "default",
            "generation": 0,
            "loaded_at": "2024-01-01T00:00:00Z",
            "sample_count": 1,
            "samples": [
                {"time": "10:00", "ph": 7.2, "turbidity": 1.1, "hardness": 0.5, "hardness_normalized": None}
            ],
        }

    def get_verdict(self) -> Dict[str, Any]:
        return dict(VERDICT)

    def predict(self) -> Dict[str, Any]:
        return {"verdict": dict(VERDICT), "narrative_id": "narr-1"}

    def poll_narrative(self, narrative_id: str, interval: float, timeout: float) -> Dict[str, Any]:
        self.poll_calls.append((narrative_id, interval, timeout))
        return self.narrative_payload

    def get_narrative(self, narrative_id: str) -> Dict[str, Any]:
        payload = self.narrative_payload.copy()
        payload["narrative_id"] = narrative_id
        return payload

    def list_narratives(self) -> List[Dict[str, Any]]:
        return [self.narrative_payload.copy()]

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def stub(monkeypatch) -> StubClient:
    client = StubClient(config=None)

    def factory(config):
        client.config = config
        return client

    monkeypatch.setattr("cli.app.ApiClient", factory)
    return client


def _write_csv(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "data.csv"
    path.write_text(body)
    return path


def test_upload_command(stub: StubClient, runner: CliRunner, tmp_path) -> None:
    csv_path = _write_csv(tmp_path, "ph,turbidity,hardness\n7.0,1.0,0.5\n")

    result = runner.invoke(app, ["upload", str(csv_path)])

    assert result.exit_code == 0
    assert "Dataset replaced. generation=3 samples=2" in result.stdout
    assert stub.uploaded_path == csv_path
    assert stub.closed is True


def test_dataset_command_prints_missing_values(stub: StubClient, runner: CliRunner) -> None:
    result = runner.invoke(app, ["dataset"])

    assert result.exit_code == 0
    assert "source: default" in result.stdout
    assert "10:00" in result.stdout
    assert "n/a" in result.stdout


def test_verdict_command(stub: StubClient, runner: CliRunner) -> None:
    result = runner.invoke(app, ["verdict"])

    assert result.exit_code == 0
    assert "category: Good" in result.stdout
    assert "score: 2/3" in result.stdout


def test_predict_without_wait(stub: StubClient, runner: CliRunner) -> None:
    result = runner.invoke(app, ["predict"])

    assert result.exit_code == 0
    assert "narrative_id: narr-1" in result.stdout
    assert not stub.poll_calls


def test_predict_with_wait(stub: StubClient, runner: CliRunner) -> None:
    result = runner.invoke(app, ["--poll-interval", "0.1", "--timeout", "5", "predict", "--wait"])

    assert result.exit_code == 0
    assert "Narrative Analysis" in result.stdout
    assert "The water is potable." in result.stdout
    assert stub.poll_calls == [("narr-1", 0.1, 5.0)]


def test_narrative_command(stub: StubClient, runner: CliRunner) -> None:
    result = runner.invoke(app, ["narrative", "narr-9"])

    assert result.exit_code == 0
    assert "narrative_id: narr-9" in result.stdout


def test_narratives_command_lists_requests(stub: StubClient, runner: CliRunner) -> None:
    result = runner.invoke(app, ["narratives"])

    assert result.exit_code == 0
    assert "Narrative Requests" in result.stdout
    assert "narr-1: completed (requested 2024-01-01T00:00:00Z)" in result.stdout


def test_narratives_command_with_no_requests(stub: StubClient, runner: CliRunner, monkeypatch) -> None:
    monkeypatch.setattr(stub, "list_narratives", lambda: [])

    result = runner.invoke(app, ["narratives"])

    assert result.exit_code == 0
    assert "No narrative requests yet." in result.stdout


def test_classify_runs_offline(stub: StubClient, runner: CliRunner, tmp_path) -> None:
    csv_path = _write_csv(
        tmp_path,
        "time,ph,turbidity,hardness\n10:00,7.2,1.1,0.5\n10:10,9.0,2.0,0.9\n",
    )

    result = runner.invoke(app, ["classify", str(csv_path), "--show-data"])

    assert result.exit_code == 0
    assert "category: Terrible" in result.stdout
    assert "10:10" in result.stdout


def test_classify_with_normalized_basis(stub: StubClient, runner: CliRunner, tmp_path) -> None:
    csv_path = _write_csv(tmp_path, "ph,turbidity,hardness\n7.0,1.0,250\n7.0,1.0,120\n")

    raw = runner.invoke(app, ["classify", str(csv_path)])
    normalized = runner.invoke(app, ["classify", str(csv_path), "--basis", "normalized"])

    assert "category: Good" in raw.stdout
    assert "category: Excellent" in normalized.stdout


def test_classify_reports_ingestion_errors(stub: StubClient, runner: CliRunner, tmp_path) -> None:
    csv_path = _write_csv(tmp_path, "time,ph\n10:00,7.0\n")

    result = runner.invoke(app, ["classify", str(csv_path)])

    assert result.exit_code == 1
