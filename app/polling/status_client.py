"""
app/polling/status_client.py

HTTP client for the job and version status endpoints, used as the
``fetch_status`` of a poller watching a remote service.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

import requests

from app.config import StatusClientSettings, get_poller_settings, get_status_client_settings
from app.polling.backoff_poller import PollerRegistry, TimerFactory, thread_timer
from db.models.import_job import ImportJobStatus
from db.models.irradiance_dataset_version import VersionStatus

logger = logging.getLogger(__name__)


class StatusClientError(RuntimeError):
    """
    Raised when a status request fails or returns an unusable payload.
    """


def is_job_terminal(payload: dict[str, Any]) -> bool:
    return payload.get("status") in ImportJobStatus.TERMINAL


def is_version_terminal(payload: dict[str, Any]) -> bool:
    return payload.get("status") in VersionStatus.TERMINAL


class ImportStatusClient:
    def __init__(
        self,
        *,
        settings: StatusClientSettings | None = None,
        session: requests.Session | None = None,
    ) -> None:
        settings = settings or get_status_client_settings()
        self._base_url = settings.base_url.rstrip("/")
        self._timeout_seconds = settings.timeout_seconds
        self._session = session or requests.Session()

    def job_status(self, job_id: uuid.UUID | str) -> dict[str, Any]:
        return self._get_json(f"/irradiance/jobs/{job_id}")

    def job_logs(self, job_id: uuid.UUID | str) -> list[dict[str, Any]]:
        payload = self._get_json(f"/irradiance/jobs/{job_id}/logs")
        return list(payload.get("logs", []))

    def version_status(self, version_id: uuid.UUID | str) -> dict[str, Any]:
        return self._get_json(f"/irradiance/versions/{version_id}")

    def _get_json(self, path: str) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        try:
            response = self._session.get(url, timeout=self._timeout_seconds)
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("Status request failed url=%s error=%s", url, exc)
            raise StatusClientError(f"Status request failed for {url}: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise StatusClientError(f"Status response from {url} was not valid JSON.") from exc
        if not isinstance(payload, dict):
            raise StatusClientError(f"Status response from {url} was not a JSON object.")
        return payload


def build_job_watcher(
    client: ImportStatusClient | None = None,
    *,
    timer_factory: TimerFactory = thread_timer,
) -> PollerRegistry:
    """
    Registry of pollers watching remote import jobs, with the configured
    backoff schedule. The caller owns it and must cancel it on teardown.
    """

    client = client or ImportStatusClient()
    settings = get_poller_settings()
    return PollerRegistry(
        fetch_status=client.job_status,
        is_terminal=is_job_terminal,
        schedule=settings.schedule_seconds,
        max_attempts=settings.max_attempts,
        timer_factory=timer_factory,
    )
