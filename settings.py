from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_STATE_PATH_ENV = "FUEL_STATE_PATH"
_NARRATIVE_WORKERS_ENV = "FUEL_NARRATIVE_WORKERS"
_GEMINI_API_KEY_ENV = "GEMINI_API_KEY"
_GEMINI_MODEL_ENV = "GEMINI_MODEL_NAME"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    state_root_path: Optional[str]
    narrative_workers: int
    gemini_api_key: Optional[str]
    gemini_model_name: str
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_worker_count(default: int) -> int:
    value = os.getenv(_NARRATIVE_WORKERS_ENV)
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
    return Settings(
        state_root_path=_read_optional_env(_STATE_PATH_ENV, "./tmp/fuel_state"),
        narrative_workers=_read_worker_count(1),
        gemini_api_key=_read_optional_env(_GEMINI_API_KEY_ENV, None),
        gemini_model_name=_read_str_env(_GEMINI_MODEL_ENV, "gemini-1.5-flash"),
        log_level=_read_log_level("INFO"),
    )
