from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Dict, List

import httpx
import typer

from cli.config import CLIConfig

_PENDING = "pending"


class ApiClient:
    """Thin HTTP client for the HydroLens API."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.request_timeout)

    def close(self) -> None:
        self._client.close()

    def upload_dataset(self, path: Path) -> Dict[str, Any]:
        with path.open("rb") as handle:
            return self._request(
                "POST",
                "/datasets",
                files={"file": (path.name, handle, "text/csv")},
            )

    def get_dataset(self) -> Dict[str, Any]:
        return self._request("GET", "/datasets/current")

    def get_verdict(self) -> Dict[str, Any]:
        return self._request("GET", "/verdict")

    def predict(self) -> Dict[str, Any]:
        return self._request("POST", "/predict")

    def get_narrative(self, narrative_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/narratives/{narrative_id}")

    def list_narratives(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/narratives")

    def poll_narrative(self, narrative_id: str, interval: float, timeout: float) -> Dict[str, Any]:
        deadline = time.monotonic() + timeout
        while True:
            payload = self.get_narrative(narrative_id)
            if payload.get("status") != _PENDING:
                return payload
            if time.monotonic() + interval > deadline:
                break
            time.sleep(interval)
        typer.secho(
            f"Timed out waiting for narrative {narrative_id}; it is still pending.",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            typer.secho(
                f"Could not reach {self._config.base_url}: {exc}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1) from exc
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        try:
            detail = exc.response.json().get("detail")
        except ValueError:
            detail = exc.response.text.strip()
        typer.secho(
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)
