from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Tuple


_BASE_URL_ENV = "SENSEBOX_BASE_URL"
_REFRESH_INTERVAL_ENV = "REFRESH_INTERVAL_SECONDS"
_HISTORY_WINDOW_ENV = "HISTORY_WINDOW"
_FETCH_TIMEOUT_ENV = "FETCH_TIMEOUT_SECONDS"
_MAP_ZOOM_ENV = "MAP_ZOOM"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_BASE_URL = "https://tmdt-solid-community-server.de/iotworkshop/public"
DEFAULT_MAP_CENTER: Tuple[float, float] = (51.2524, 7.1287)


@dataclass(frozen=True)
class Settings:
    base_url: str
    refresh_interval: float
    history_window: int
    fetch_timeout: float
    map_center: Tuple[float, float]
    map_zoom: int
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


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
        base_url=_read_str_env(_BASE_URL_ENV, DEFAULT_BASE_URL).rstrip("/"),
        refresh_interval=_read_positive_float(_REFRESH_INTERVAL_ENV, 60.0),
        history_window=_read_positive_int(_HISTORY_WINDOW_ENV, 20),
        fetch_timeout=_read_positive_float(_FETCH_TIMEOUT_ENV, 10.0),
        map_center=DEFAULT_MAP_CENTER,
        map_zoom=_read_positive_int(_MAP_ZOOM_ENV, 18),
        log_level=_read_log_level("INFO"),
    )
