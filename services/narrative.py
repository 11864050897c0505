"""Client side of the external narrative analysis service."""

from __future__ import annotations

import math
from typing import Any, Dict, List, Optional

import httpx

from models.records import Dataset

FALLBACK_ANALYSIS = "Error retrieving analysis from the narrative service."

ANALYZE_PATH = "/analyze"


class NarrativeError(RuntimeError):
    """The narrative service did not produce a usable analysis."""

    def __init__(self, reason: str, status_code: Optional[int] = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code


def _json_number(value: Optional[float]) -> Optional[float]:
    if value is None or math.isnan(value):
        return None
    return value


def build_payload(dataset: Dataset) -> Dict[str, List[Dict[str, Any]]]:
    """Serialize the dataset in order, sending the normalized hardness."""
    return {
        "data": [
            {
                "time": sample.time,
                "ph": _json_number(sample.ph),
                "turbidity": _json_number(sample.turbidity),
                "hardness": _json_number(sample.hardness_normalized),
            }
            for sample in dataset.samples
        ]
    }


class NarrativeClient:
    """Posts datasets to the narrative service and returns its prose."""

    def __init__(
        self,
        base_url: Optional[str],
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url
        self._client: Optional[httpx.Client] = None
        if base_url:
            self._client = httpx.Client(
                base_url=base_url, timeout=timeout, transport=transport
            )

    def close(self) -> None:
        if self._client is not None:
            self._client.close()

    def request_analysis(self, dataset: Dataset) -> str:
        if self._client is None:
            raise NarrativeError("narrative service is not configured")
        if not dataset.samples:
            raise NarrativeError("dataset is empty")

        try:
            response = self._client.post(ANALYZE_PATH, json=build_payload(dataset))
        except httpx.TimeoutException as exc:
            raise NarrativeError("narrative service timed out") from exc
        except httpx.HTTPError as exc:
            raise NarrativeError(f"transport error: {exc}") from exc

        if not response.is_success:
            raise NarrativeError(
                f"narrative service responded with {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise NarrativeError(
                "narrative service returned invalid JSON",
                status_code=response.status_code,
            ) from exc

        analysis = payload.get("analysis") if isinstance(payload, dict) else None
        if not isinstance(analysis, str) or not analysis.strip():
            raise NarrativeError(
                "no analysis returned", status_code=response.status_code
            )
        return analysis
