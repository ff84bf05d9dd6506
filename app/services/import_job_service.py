"""
app/services/import_job_service.py

Job tracker: the outward-facing async handle for an import and its
append-only log stream.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy.orm import Session

from app.domain.errors import ImportJobNotFoundError
from db.models.import_job import ImportJob, ImportJobLog, ImportJobLogLevel, ImportJobStatus
from db.repositories.import_job_repository import ImportJobRepository

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    ImportJobLogLevel.INFO: logging.INFO,
    ImportJobLogLevel.WARN: logging.WARNING,
    ImportJobLogLevel.ERROR: logging.ERROR,
}


class ImportJobTracker:
    """
    Records job status and log entries. Methods flush but do not commit;
    the caller owns the transaction.
    """

    def __init__(self, db: Session) -> None:
        self._db = db
        self._repository = ImportJobRepository(db)

    def create_job(self, *, dataset_key: str, request_payload: dict[str, Any] | None = None) -> ImportJob:
        job = self._repository.create_job(dataset_key=dataset_key, request_payload=request_payload)
        logger.info("Import job created job_id=%s dataset=%s", job.id, dataset_key)
        return job

    def get_status(self, job_id: uuid.UUID) -> ImportJob:
        job = self._repository.get_job(job_id)
        if job is None:
            raise ImportJobNotFoundError(f"Import job not found: {job_id}")
        return job

    def get_logs(self, job_id: uuid.UUID) -> list[ImportJobLog]:
        self.get_status(job_id)
        return self._repository.get_logs(job_id)

    def append_log(self, job_id: uuid.UUID, level: str, message: str) -> ImportJobLog:
        if level not in ImportJobLogLevel.ALL:
            raise ValueError(f"Unsupported log level: {level}")
        logger.log(_LOG_LEVELS[level], "Import job log job_id=%s message=%s", job_id, message)
        return self._repository.append_log(job_id=job_id, level=level, message=message)

    def set_status(
        self,
        job_id: uuid.UUID,
        status: str,
        *,
        row_count: int | None = None,
        error_message: str | None = None,
        version_id: uuid.UUID | None = None,
    ) -> ImportJob:
        """
        Update the job status. ``running`` stamps ``started_at``; ``success``
        and ``failed`` stamp ``finished_at``.
        """

        if status not in ImportJobStatus.ALL:
            raise ValueError(f"Unsupported job status: {status}")
        job = self._repository.set_status(
            job_id=job_id,
            status=status,
            row_count=row_count,
            error_message=error_message,
            version_id=version_id,
        )
        if job is None:
            raise ImportJobNotFoundError(f"Import job not found: {job_id}")
        logger.info("Import job status job_id=%s status=%s", job_id, status)
        return job

    def list_jobs(
        self,
        *,
        limit: int = 100,
        dataset_key: str | None = None,
        status: str | None = None,
    ) -> list[ImportJob]:
        return self._repository.list_jobs(limit=limit, dataset_key=dataset_key, status=status)
