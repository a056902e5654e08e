from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


_HOST_ENV = "COLLECTOR_HOST"
_PORT_ENV = "COLLECTOR_PORT"
_MAX_SESSIONS_ENV = "COLLECTOR_MAX_SESSIONS"
_STORE_PATH_ENV = "COLLECTOR_STORE_PATH"
_SHUTDOWN_GRACE_ENV = "COLLECTOR_SHUTDOWN_GRACE"
_LOG_LEVEL_ENV = "LOG_LEVEL"

MIN_PORT = 1024
MAX_PORT = 65535


@dataclass(frozen=True)
class Settings:
    host: str
    port: int
    max_sessions: int
    store_path: str
    shutdown_grace: float
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


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


def _read_port(default: int) -> int:
    parsed = _read_positive_int(_PORT_ENV, default)
    if parsed < MIN_PORT or parsed > MAX_PORT:
        return default
    return parsed


def _read_grace(default: float) -> float:
    value = os.getenv(_SHUTDOWN_GRACE_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed >= 0 else default


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
        host=_read_str_env(_HOST_ENV, "127.0.0.1"),
        port=_read_port(8080),
        max_sessions=_read_positive_int(_MAX_SESSIONS_ENV, 4),
        store_path=_read_str_env(_STORE_PATH_ENV, "data/records.csv"),
        shutdown_grace=_read_grace(10.0),
        log_level=_read_log_level("INFO"),
    )
