from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_STORE_NAME_ENV = "SPATIAL_STORE_NAME"
_STORE_PATH_ENV = "SPATIAL_STORE_PATH"
_POOL_SIZE_ENV = "STORE_POOL_SIZE"
_STORE_TIMEOUT_ENV = "STORE_TIMEOUT_SECONDS"
_AUDIT_WORKER_COUNT_ENV = "AUDIT_WORKER_COUNT"
_STORE_WORKER_COUNT_ENV = "STORE_WORKER_COUNT"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    store_name: str
    store_persistence_path: Optional[str]
    store_pool_size: int
    store_timeout_seconds: float
    audit_workers: int
    store_workers: int
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
        store_name=_read_str_env(_STORE_NAME_ENV, "ride_eligibility"),
        store_persistence_path=_read_optional_env(_STORE_PATH_ENV, "./tmp/spatial_store.json"),
        store_pool_size=_read_positive_int(_POOL_SIZE_ENV, 10),
        store_timeout_seconds=_read_positive_float(_STORE_TIMEOUT_ENV, 2.0),
        audit_workers=_read_positive_int(_AUDIT_WORKER_COUNT_ENV, 4),
        store_workers=_read_positive_int(_STORE_WORKER_COUNT_ENV, 32),
        log_level=_read_log_level("INFO"),
    )
