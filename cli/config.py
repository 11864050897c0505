from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_POLL_TIMEOUT = 90.0
DEFAULT_REQUEST_TIMEOUT = 30.0

_BASE_URL_ENV = "API_BASE_URL"
_POLL_INTERVAL_ENV = "CLI_POLL_INTERVAL"
_POLL_TIMEOUT_ENV = "CLI_POLL_TIMEOUT"
_REQUEST_TIMEOUT_ENV = "CLI_REQUEST_TIMEOUT"


@dataclass(frozen=True)
class CLIConfig:
    base_url: str = DEFAULT_BASE_URL
    poll_interval: float = DEFAULT_POLL_INTERVAL
    poll_timeout: float = DEFAULT_POLL_TIMEOUT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        parsed = float(raw)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def load_config(
    base_url: Optional[str] = None,
    poll_interval: Optional[float] = None,
    poll_timeout: Optional[float] = None,
) -> CLIConfig:
    """Merge explicit options over environment variables over defaults."""
    url = base_url or os.getenv(_BASE_URL_ENV) or DEFAULT_BASE_URL
    return CLIConfig(
        base_url=url.rstrip("/"),
        poll_interval=poll_interval if poll_interval is not None
        else _env_float(_POLL_INTERVAL_ENV, DEFAULT_POLL_INTERVAL),
        poll_timeout=poll_timeout if poll_timeout is not None
        else _env_float(_POLL_TIMEOUT_ENV, DEFAULT_POLL_TIMEOUT),
        request_timeout=_env_float(_REQUEST_TIMEOUT_ENV, DEFAULT_REQUEST_TIMEOUT),
    )
