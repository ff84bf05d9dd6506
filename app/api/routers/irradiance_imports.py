"""
Async import endpoints: trigger a server-side import and follow its job.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from app.api.dependencies import get_csv_uploads
from app.api.error_mapping import to_http_exception
from app.domain.errors import IrradianceIngestionError
from app.schemas.irradiance_imports import (
    ImportJobAcceptedResponse,
    ImportJobListResponse,
    ImportJobLogResponse,
    ImportJobLogsResponse,
    ImportJobStatusResponse,
)
from app.services.import_job_service import ImportJobTracker
from app.services.import_orchestrator_service import (
    FastAPIBackgroundTaskExecutor,
    ImportOrchestratorService,
    get_import_orchestrator_service,
)
from db.models.import_job import ImportJob
from db.session import get_db

router = APIRouter(prefix="/irradiance", tags=["irradiance-imports"])


@router.post(
    "/imports",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ImportJobAcceptedResponse,
)
def trigger_import(
    background_tasks: BackgroundTasks,
    files: list[UploadFile] = Depends(get_csv_uploads),
    dataset_code: str = Form(..., description="Registered dataset code"),
    version_tag: str | None = Form(default=None, description="Version tag; generated when omitted"),
    source_note: str | None = Form(default=None),
    db: Session = Depends(get_db),
    orchestrator: ImportOrchestratorService = Depends(get_import_orchestrator_service),
) -> ImportJobAcceptedResponse:
    try:
        job = orchestrator.trigger_import(
            db=db,
            executor=FastAPIBackgroundTaskExecutor(background_tasks),
            uploads=files,
            dataset_code=dataset_code,
            version_tag=version_tag or None,
            source_note=source_note,
        )
    except IrradianceIngestionError as exc:
        raise to_http_exception(exc) from exc
    finally:
        for file in files:
            file.file.close()

    return ImportJobAcceptedResponse(
        job_id=job.id,
        dataset_key=job.dataset_key,
        status=job.status,
        created_at=job.created_at,
    )


@router.get("/jobs", response_model=ImportJobListResponse)
def list_jobs(
    dataset_key: str | None = Query(default=None, description="Optional dataset code filter"),
    status_filter: str | None = Query(default=None, alias="status", description="Optional status filter"),
    limit: int = Query(default=100, ge=1, le=500, description="Max jobs returned"),
    db: Session = Depends(get_db),
) -> ImportJobListResponse:
    jobs = ImportJobTracker(db).list_jobs(limit=limit, dataset_key=dataset_key, status=status_filter)
    return ImportJobListResponse(jobs=[_to_status_response(job) for job in jobs])


@router.get("/jobs/{job_id}", response_model=ImportJobStatusResponse)
def get_job(job_id: UUID, db: Session = Depends(get_db)) -> ImportJobStatusResponse:
    try:
        job = ImportJobTracker(db).get_status(job_id)
    except IrradianceIngestionError as exc:
        raise to_http_exception(exc) from exc
    return _to_status_response(job)


@router.get("/jobs/{job_id}/logs", response_model=ImportJobLogsResponse)
def get_job_logs(job_id: UUID, db: Session = Depends(get_db)) -> ImportJobLogsResponse:
    try:
        logs = ImportJobTracker(db).get_logs(job_id)
    except IrradianceIngestionError as exc:
        raise to_http_exception(exc) from exc
    return ImportJobLogsResponse(
        job_id=job_id,
        logs=[ImportJobLogResponse(timestamp=log.timestamp, level=log.level, message=log.message) for log in logs],
    )


def _to_status_response(job: ImportJob) -> ImportJobStatusResponse:
    return ImportJobStatusResponse(
        job_id=job.id,
        dataset_key=job.dataset_key,
        status=job.status,
        version_id=job.version_id,
        row_count=job.row_count,
        error_message=job.error_message,
        request_payload=job.request_payload,
        created_at=job.created_at,
        started_at=job.started_at,
        finished_at=job.finished_at,
    )
