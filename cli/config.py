from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_TIMEOUT = 30.0
DEFAULT_NARRATIVE_POLL = 0.5
DEFAULT_NARRATIVE_WAIT = 60.0

_ENV_BASE_URL = "API_BASE_URL"
_ENV_TIMEOUT = "CLI_TIMEOUT"
_ENV_NARRATIVE_POLL = "CLI_NARRATIVE_POLL"
_ENV_NARRATIVE_WAIT = "CLI_NARRATIVE_WAIT"


@dataclass(frozen=True)
class CLIConfig:
    """Where the operator console sends requests and how long it waits.

    ``timeout`` bounds a single HTTP request. ``narrative_wait`` bounds the
    whole ``narrative --wait`` loop, which polls every ``poll_interval``.
    """

    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    poll_interval: float = DEFAULT_NARRATIVE_POLL
    narrative_wait: float = DEFAULT_NARRATIVE_WAIT


def _positive_env(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        seconds = float(raw)
    except ValueError:
        return default
    return seconds if seconds > 0 else default


def load_config(base_url: Optional[str] = None, timeout: Optional[float] = None) -> CLIConfig:
    url = (base_url or os.getenv(_ENV_BASE_URL) or DEFAULT_BASE_URL).rstrip("/")
    return CLIConfig(
        base_url=url,
        timeout=timeout if timeout is not None else _positive_env(_ENV_TIMEOUT, DEFAULT_TIMEOUT),
        poll_interval=_positive_env(_ENV_NARRATIVE_POLL, DEFAULT_NARRATIVE_POLL),
        narrative_wait=_positive_env(_ENV_NARRATIVE_WAIT, DEFAULT_NARRATIVE_WAIT),
    )
