from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_NARRATIVE_URL_ENV = "NARRATIVE_SERVICE_URL"
_NARRATIVE_TIMEOUT_ENV = "NARRATIVE_TIMEOUT_SECONDS"
_NARRATIVE_WORKERS_ENV = "NARRATIVE_WORKER_COUNT"
_HARDNESS_BASIS_ENV = "CLASSIFICATION_HARDNESS_BASIS"
_NAN_POLICY_ENV = "HARDNESS_NAN_POLICY"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_HARDNESS_BASES = ("raw", "normalized")
_NAN_POLICIES = ("skip", "propagate")


@dataclass(frozen=True)
class Settings:
    narrative_service_url: Optional[str]
    narrative_timeout: float
    narrative_workers: int
    hardness_basis: str
    nan_policy: str
    log_level: str


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_choice(name: str, choices: tuple[str, ...], default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    return candidate if candidate in choices else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    url = _read_optional_env(_NARRATIVE_URL_ENV, "http://localhost:5000")
    return Settings(
        narrative_service_url=url.rstrip("/") if url else None,
        narrative_timeout=_read_positive_float(_NARRATIVE_TIMEOUT_ENV, 30.0),
        narrative_workers=_read_positive_int(_NARRATIVE_WORKERS_ENV, 2),
        hardness_basis=_read_choice(_HARDNESS_BASIS_ENV, _HARDNESS_BASES, "raw"),
        nan_policy=_read_choice(_NAN_POLICY_ENV, _NAN_POLICIES, "skip"),
        log_level=_read_log_level("INFO"),
    )
