"""
Repository for import job lifecycle persistence, status lookup and the
per-job log stream.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import Select, delete, or_, select
from sqlalchemy.orm import Session

from db.base import utc_now
from db.models.import_job import ImportJob, ImportJobLog, ImportJobStatus


class ImportJobRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_job(
        self,
        *,
        dataset_key: str,
        request_payload: dict[str, Any] | None = None,
    ) -> ImportJob:
        job = ImportJob(
            dataset_key=dataset_key,
            status=ImportJobStatus.QUEUED,
            request_payload=request_payload,
        )
        self._session.add(job)
        self._session.flush()
        self._session.refresh(job)
        return job

    def get_job(self, job_id: uuid.UUID) -> ImportJob | None:
        return self._session.get(ImportJob, job_id)

    def list_jobs(
        self,
        *,
        limit: int = 100,
        dataset_key: str | None = None,
        status: str | None = None,
    ) -> list[ImportJob]:
        stmt: Select[tuple[ImportJob]] = select(ImportJob)

        if dataset_key:
            stmt = stmt.where(ImportJob.dataset_key == dataset_key)
        if status:
            stmt = stmt.where(ImportJob.status == status)

        stmt = stmt.order_by(ImportJob.created_at.desc()).limit(max(1, limit))
        return list(self._session.scalars(stmt).all())

    def set_status(
        self,
        *,
        job_id: uuid.UUID,
        status: str,
        row_count: int | None = None,
        error_message: str | None = None,
        version_id: uuid.UUID | None = None,
    ) -> ImportJob | None:
        job = self.get_job(job_id)
        if job is None:
            return None
        job.status = status
        if status == ImportJobStatus.RUNNING:
            job.started_at = utc_now()
            job.finished_at = None
        elif status in ImportJobStatus.TERMINAL:
            job.finished_at = utc_now()
        if row_count is not None:
            job.row_count = row_count
        if error_message is not None:
            job.error_message = error_message
        if version_id is not None:
            job.version_id = version_id
        self._session.flush()
        return job

    def append_log(self, *, job_id: uuid.UUID, level: str, message: str) -> ImportJobLog:
        entry = ImportJobLog(job_id=job_id, level=level, message=message)
        self._session.add(entry)
        self._session.flush()
        return entry

    def get_logs(self, job_id: uuid.UUID) -> list[ImportJobLog]:
        stmt = (
            select(ImportJobLog)
            .where(ImportJobLog.job_id == job_id)
            .order_by(ImportJobLog.timestamp, ImportJobLog.id)
        )
        return list(self._session.scalars(stmt).all())

    def delete_for_dataset(
        self,
        *,
        dataset_key: str,
        version_ids: Sequence[uuid.UUID],
    ) -> int:
        """
        Delete jobs (and, via cascade, their logs) that reference the
        dataset by registry code or by one of its version ids.
        """

        condition = ImportJob.dataset_key == dataset_key
        if version_ids:
            condition = or_(condition, ImportJob.version_id.in_(list(version_ids)))
        job_ids = list(self._session.scalars(select(ImportJob.id).where(condition)).all())
        return self._delete_jobs(job_ids)

    def delete_finished_before(self, cutoff: datetime) -> int:
        stmt = select(ImportJob.id).where(
            ImportJob.status.in_(list(ImportJobStatus.TERMINAL)),
            ImportJob.finished_at.is_not(None),
            ImportJob.finished_at < cutoff,
        )
        return self._delete_jobs(list(self._session.scalars(stmt).all()))

    def _delete_jobs(self, job_ids: list[uuid.UUID]) -> int:
        if not job_ids:
            return 0
        # Logs are removed explicitly; SQLite does not enforce ON DELETE CASCADE by default.
        self._session.execute(delete(ImportJobLog).where(ImportJobLog.job_id.in_(job_ids)))
        result = self._session.execute(delete(ImportJob).where(ImportJob.id.in_(job_ids)))
        return int(result.rowcount or 0)
