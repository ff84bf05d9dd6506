"""
Orchestrator service for server-side irradiance imports.

An import stores the uploaded CSV files, creates a ``queued`` job and runs
parse -> init -> ingest -> checksum -> finalize in a background task,
writing progress to the job log. Any failure aborts the version (when one
was opened) and marks the job ``failed``. A tag that is already taken
ends the job as a ``success`` with no version and a ``warn`` log entry.
"""

from __future__ import annotations

import logging
import os
import tempfile
import uuid
from collections.abc import Callable, Sequence
from functools import lru_cache
from typing import Any, Protocol

from fastapi import BackgroundTasks, UploadFile
from sqlalchemy.orm import Session, sessionmaker

from app.domain.errors import CSVValidationError, DatasetNotFoundError, VersionConflictError
from app.domain.irradiance import IngestionProgress, MergedRowSet
from app.services.batch_ingestion_service import BatchIngestionService, get_batch_ingestion_service
from app.services.checksum_service import compute_checksum
from app.services.csv_merge_service import IrradianceCSVParser, generate_version_tag, get_csv_parser
from app.services.import_job_service import ImportJobTracker
from app.services.version_lifecycle_service import VersionLifecycleService, get_version_lifecycle_service
from db.models.import_job import ImportJob, ImportJobLogLevel, ImportJobStatus
from db.repositories.dataset_repository import DatasetRepository

logger = logging.getLogger(__name__)

# Only the header line is needed for the synchronous check.
_HEADER_PEEK_BYTES = 64 * 1024


class IngestionTaskExecutor(Protocol):
    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        ...


class FastAPIBackgroundTaskExecutor:
    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self._background_tasks = background_tasks

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        self._background_tasks.add_task(task, *args, **kwargs)


class ImportOrchestratorService:
    """
    Coordinates job creation, background execution and status persistence
    for CSV imports.
    """

    def __init__(
        self,
        *,
        session_factory: sessionmaker[Session] | None = None,
        parser: IrradianceCSVParser | None = None,
        lifecycle: VersionLifecycleService | None = None,
        ingestion: BatchIngestionService | None = None,
    ) -> None:
        if session_factory is None:
            from db.session import SessionLocal

            self._session_factory = SessionLocal
        else:
            self._session_factory = session_factory

        self._parser = parser or get_csv_parser()
        self._lifecycle = lifecycle or get_version_lifecycle_service()
        self._ingestion = ingestion or get_batch_ingestion_service()

    def trigger_import(
        self,
        *,
        db: Session,
        executor: IngestionTaskExecutor,
        uploads: Sequence[UploadFile],
        dataset_code: str,
        version_tag: str | None = None,
        source_note: str | None = None,
    ) -> ImportJob:
        """
        Validate headers, persist the uploads and queue the import.

        Raises CSVValidationError for malformed headers and
        DatasetNotFoundError for an unknown dataset; neither creates a job.
        """

        if DatasetRepository(db).get_by_code(dataset_code) is None:
            raise DatasetNotFoundError(f"Dataset not found: {dataset_code}")
        self._parser.check_headers([(self._file_name(upload), self._peek(upload)) for upload in uploads])

        tag = version_tag or generate_version_tag(prefix=dataset_code.lower())
        stored: list[tuple[str, str]] = []
        files_payload: list[dict[str, Any]] = []
        try:
            for upload in uploads:
                temp_path, file_size = self._persist_temp_upload(upload)
                stored.append((self._file_name(upload), temp_path))
                files_payload.append(
                    {
                        "file_name": self._file_name(upload),
                        "content_type": upload.content_type,
                        "file_size_bytes": file_size,
                    }
                )

            tracker = ImportJobTracker(db)
            job = tracker.create_job(
                dataset_key=dataset_code,
                request_payload={
                    "dataset_code": dataset_code,
                    "version_tag": tag,
                    "source_note": source_note,
                    "files": files_payload,
                },
            )
            tracker.append_log(job.id, ImportJobLogLevel.INFO, f"Import queued: {len(stored)} file(s), tag {tag}.")
            db.commit()
        except Exception:
            db.rollback()
            for _, temp_path in stored:
                self._delete_file_quietly(temp_path)
            raise

        try:
            executor.submit(self._run_import_job, job.id, dataset_code, tag, source_note, stored)
        except Exception:
            for _, temp_path in stored:
                self._delete_file_quietly(temp_path)
            tracker.set_status(job.id, ImportJobStatus.FAILED, error_message="Failed to schedule import job.")
            db.commit()
            raise

        return job

    def _run_import_job(
        self,
        job_id: uuid.UUID,
        dataset_code: str,
        version_tag: str,
        source_note: str | None,
        stored_files: list[tuple[str, str]],
    ) -> None:
        with self._session_factory() as db:
            tracker = ImportJobTracker(db)
            version_id: uuid.UUID | None = None
            try:
                tracker.set_status(job_id, ImportJobStatus.RUNNING)
                tracker.append_log(job_id, ImportJobLogLevel.INFO, f"Import started for {dataset_code} ({version_tag}).")
                db.commit()

                merged = self._parse(stored_files)
                self._log_parse_summary(tracker, job_id, merged)
                db.commit()
                if not merged.rows:
                    raise CSVValidationError("No valid rows found in the uploaded files.")

                handle = self._lifecycle.init_version(
                    db=db,
                    dataset_code=dataset_code,
                    version_tag=version_tag,
                    source_note=source_note,
                    metadata={"job_id": str(job_id), "files": merged.files},
                )
                version_id = handle.version_id
                tracker.set_status(job_id, ImportJobStatus.RUNNING, version_id=version_id)
                tracker.append_log(job_id, ImportJobLogLevel.INFO, f"Version {version_id} opened.")
                db.commit()

                def record_progress(progress: IngestionProgress) -> None:
                    tracker.append_log(
                        job_id,
                        ImportJobLogLevel.INFO,
                        f"Stored {progress.submitted}/{progress.total} rows ({progress.percent}%).",
                    )
                    db.commit()

                submitted = self._ingestion.ingest_all(
                    db=db,
                    version_id=version_id,
                    rows=merged.rows,
                    on_progress=record_progress,
                )

                checksum = compute_checksum(merged.rows)
                superseded = self._lifecycle.finalize_version(
                    db=db,
                    version_id=version_id,
                    row_count=submitted,
                    checksum=checksum,
                    metadata={
                        "files": merged.file_row_counts,
                        "has_dhi": merged.has_dhi,
                        "has_dni": merged.has_dni,
                        "parsed_rows": len(merged.rows),
                        "dropped_rows": merged.dropped_rows,
                        "keys_diff_pct": merged.keys_diff_pct,
                    },
                )
                if superseded:
                    tracker.append_log(
                        job_id,
                        ImportJobLogLevel.INFO,
                        f"Deprecated {len(superseded)} previous active version(s).",
                    )
                tracker.set_status(job_id, ImportJobStatus.SUCCESS, row_count=submitted)
                tracker.append_log(job_id, ImportJobLogLevel.INFO, f"Import finished: {submitted} rows, checksum {checksum[:12]}.")
                db.commit()
            except VersionConflictError as exc:
                self._mark_job_conflict(db=db, job_id=job_id, exc=exc)
            except Exception as exc:
                self._mark_job_failed(db=db, job_id=job_id, exc=exc, version_id=version_id)
            finally:
                for _, temp_path in stored_files:
                    self._delete_file_quietly(temp_path)

    def _parse(self, stored_files: list[tuple[str, str]]) -> MergedRowSet:
        files = []
        for file_name, temp_path in stored_files:
            with open(temp_path, "rb") as file_handle:
                files.append((file_name, file_handle.read()))
        return self._parser.parse_files(files)

    @staticmethod
    def _log_parse_summary(tracker: ImportJobTracker, job_id: uuid.UUID, merged: MergedRowSet) -> None:
        tracker.append_log(
            job_id,
            ImportJobLogLevel.INFO,
            f"Parsed {len(merged.rows)} rows from {len(merged.files)} file(s); "
            f"dropped {merged.dropped_rows}, warnings {merged.warning_count}.",
        )
        if not merged.keys_match:
            tracker.append_log(
                job_id,
                ImportJobLogLevel.WARN,
                f"Coordinate sets differ between files by {merged.keys_diff_pct:.2f}%.",
            )

    def _mark_job_conflict(self, *, db: Session, job_id: uuid.UUID, exc: VersionConflictError) -> None:
        """
        Close the job as a no-op: the tag is already imported or in
        progress, so the job produces no version of its own.
        """

        logger.warning("Import job skipped id=%s conflict=%s: %s", job_id, exc.kind.value, exc)
        try:
            db.rollback()
            tracker = ImportJobTracker(db)
            tracker.set_status(job_id, ImportJobStatus.SUCCESS, row_count=0)
            tracker.append_log(job_id, ImportJobLogLevel.WARN, f"{exc.kind.value}: {exc} Nothing imported.")
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Failed to persist skipped import job state id=%s", job_id)

    def _mark_job_failed(
        self,
        *,
        db: Session,
        job_id: uuid.UUID,
        exc: Exception,
        version_id: uuid.UUID | None,
    ) -> None:
        error_message = f"{type(exc).__name__}: {exc}"
        logger.exception("Import job failed id=%s error=%s", job_id, error_message)
        try:
            db.rollback()
            if version_id is not None:
                self._lifecycle.abort_version(db=db, version_id=version_id, error_message=str(exc)[:2000])
            tracker = ImportJobTracker(db)
            tracker.set_status(job_id, ImportJobStatus.FAILED, error_message=error_message[:2000])
            tracker.append_log(job_id, ImportJobLogLevel.ERROR, error_message[:2000])
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Failed to persist failed import job state id=%s", job_id)

    @staticmethod
    def _file_name(upload: UploadFile) -> str:
        return upload.filename or "upload.csv"

    @staticmethod
    def _peek(upload: UploadFile) -> bytes:
        upload.file.seek(0)
        head = upload.file.read(_HEADER_PEEK_BYTES)
        upload.file.seek(0)
        # Cut at the last newline so a multi-byte character is never split.
        cut = head.rfind(b"\n")
        return head[:cut] if cut > 0 else head

    def _persist_temp_upload(self, upload_file: UploadFile) -> tuple[str, int]:
        _, ext = os.path.splitext(self._file_name(upload_file))
        suffix = ext if ext else ".csv"
        upload_file.file.seek(0)

        with tempfile.NamedTemporaryFile(delete=False, prefix="irradiance_import_", suffix=suffix) as temp_file:
            while True:
                chunk = upload_file.file.read(1024 * 1024)
                if not chunk:
                    break
                temp_file.write(chunk)
            temp_path = temp_file.name
            file_size = temp_file.tell()

        upload_file.file.seek(0)
        return temp_path, file_size

    def _delete_file_quietly(self, file_path: str) -> None:
        try:
            os.remove(file_path)
        except OSError:
            return


@lru_cache(maxsize=1)
def get_import_orchestrator_service() -> ImportOrchestratorService:
    return ImportOrchestratorService()
