"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files

# Brazilian territory, used as the service area when a dataset has no
# coverage of its own.
_DEFAULT_COVERAGE = (-33.75, 5.27, -73.99, -34.79)


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_seconds_list_env(name: str, default: tuple[float, ...]) -> tuple[float, ...]:
    """
    Read a comma-separated list of positive delays; falls back to ``default``
    if any element is missing or invalid.
    """

    raw_value = _get_str_env(name, "")
    if not raw_value:
        return default
    try:
        values = tuple(float(token) for token in raw_value.split(",") if token.strip())
    except ValueError:
        return default
    if not values or any(value <= 0 for value in values):
        return default
    return values


@dataclass(frozen=True)
class IngestionSettings:
    """
    Runtime settings for irradiance batch ingestion.
    """

    batch_size: int = 500
    chunk_pause_seconds: float = 0.0
    chunk_max_retries: int = 3
    chunk_retry_delay_seconds: float = 1.0
    max_row_issues: int = 500
    log_row_issues: bool = True


@dataclass(frozen=True)
class PollerSettings:
    """
    Backoff schedule for job/version status polling.
    """

    schedule_seconds: tuple[float, ...] = (3.0, 5.0, 8.0)
    max_attempts: int = 10


@dataclass(frozen=True)
class AuditSettings:
    """
    Expected service-area box and tolerance used by the coverage check.
    """

    min_lat: float = _DEFAULT_COVERAGE[0]
    max_lat: float = _DEFAULT_COVERAGE[1]
    min_lon: float = _DEFAULT_COVERAGE[2]
    max_lon: float = _DEFAULT_COVERAGE[3]
    tolerance_deg: float = 0.5


@dataclass(frozen=True)
class MaintenanceSettings:
    """
    Periodic cleanup of stuck versions and old import jobs.
    """

    enabled: bool = True
    stuck_version_hours: int = 6
    job_retention_days: int = 30
    interval_minutes: int = 30


@dataclass(frozen=True)
class StatusClientSettings:
    """
    HTTP settings for the remote import status client.
    """

    base_url: str = "http://localhost:8000"
    timeout_seconds: float = 10.0


@lru_cache(maxsize=1)
def get_ingestion_settings() -> IngestionSettings:
    """
    Return cached ingestion settings from environment variables.
    """

    return IngestionSettings(
        batch_size=max(1, _get_int_env("IRRADIANCE_BATCH_SIZE", 500)),
        chunk_pause_seconds=max(0.0, _get_float_env("IRRADIANCE_CHUNK_PAUSE_SECONDS", 0.0)),
        chunk_max_retries=max(0, _get_int_env("IRRADIANCE_CHUNK_MAX_RETRIES", 3)),
        chunk_retry_delay_seconds=max(0.0, _get_float_env("IRRADIANCE_CHUNK_RETRY_DELAY_SECONDS", 1.0)),
        max_row_issues=max(1, _get_int_env("IRRADIANCE_MAX_ROW_ISSUES", 500)),
        log_row_issues=_get_bool_env("IRRADIANCE_LOG_ROW_ISSUES", True),
    )


@lru_cache(maxsize=1)
def get_poller_settings() -> PollerSettings:
    return PollerSettings(
        schedule_seconds=_get_seconds_list_env("POLLER_SCHEDULE_SECONDS", (3.0, 5.0, 8.0)),
        max_attempts=max(1, _get_int_env("POLLER_MAX_ATTEMPTS", 10)),
    )


@lru_cache(maxsize=1)
def get_audit_settings() -> AuditSettings:
    """
    Return cached audit settings. Defaults cover the Brazilian territory.
    """

    return AuditSettings(
        min_lat=_get_float_env("AUDIT_COVERAGE_MIN_LAT", _DEFAULT_COVERAGE[0]),
        max_lat=_get_float_env("AUDIT_COVERAGE_MAX_LAT", _DEFAULT_COVERAGE[1]),
        min_lon=_get_float_env("AUDIT_COVERAGE_MIN_LON", _DEFAULT_COVERAGE[2]),
        max_lon=_get_float_env("AUDIT_COVERAGE_MAX_LON", _DEFAULT_COVERAGE[3]),
        tolerance_deg=max(0.0, _get_float_env("AUDIT_COVERAGE_TOLERANCE_DEG", 0.5)),
    )


@lru_cache(maxsize=1)
def get_maintenance_settings() -> MaintenanceSettings:
    return MaintenanceSettings(
        enabled=_get_bool_env("MAINTENANCE_ENABLED", True),
        stuck_version_hours=max(1, _get_int_env("MAINTENANCE_STUCK_VERSION_HOURS", 6)),
        job_retention_days=max(1, _get_int_env("MAINTENANCE_JOB_RETENTION_DAYS", 30)),
        interval_minutes=max(1, _get_int_env("MAINTENANCE_INTERVAL_MINUTES", 30)),
    )


@lru_cache(maxsize=1)
def get_status_client_settings() -> StatusClientSettings:
    return StatusClientSettings(
        base_url=_get_str_env("STATUS_API_BASE_URL", "http://localhost:8000").rstrip("/"),
        timeout_seconds=max(1.0, _get_float_env("STATUS_API_TIMEOUT_SECONDS", 10.0)),
    )
