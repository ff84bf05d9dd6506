"""
app/api/routers/irradiance_versions.py

Version lifecycle protocol endpoints: init, batch, finalize, abort, plus
version status and the integrity audit.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.error_mapping import to_http_exception
from app.domain.errors import IrradianceIngestionError, VersionConflictError
from app.schemas.irradiance_versions import (
    GradedCheckResponse,
    IntegrityReportResponse,
    IntegrityStatsResponse,
    VersionAbortRequest,
    VersionActionResponse,
    VersionBatchRequest,
    VersionBatchResponse,
    VersionConflictResponse,
    VersionFinalizeRequest,
    VersionInitRequest,
    VersionInitResponse,
    VersionResponse,
)
from app.services.batch_ingestion_service import BatchIngestionService, get_batch_ingestion_service
from app.services.integrity_audit_service import IntegrityAuditService, get_integrity_audit_service
from app.services.version_lifecycle_service import VersionLifecycleService, get_version_lifecycle_service
from db.session import get_db

router = APIRouter(prefix="/irradiance/versions", tags=["irradiance-versions"])


@router.post(
    "/init",
    response_model=VersionInitResponse,
    status_code=status.HTTP_201_CREATED,
    responses={status.HTTP_409_CONFLICT: {"model": VersionConflictResponse}},
)
def init_version(
    body: VersionInitRequest,
    db: Session = Depends(get_db),
    lifecycle: VersionLifecycleService = Depends(get_version_lifecycle_service),
) -> VersionInitResponse | JSONResponse:
    """
    Open a ``processing`` version. An already-used tag answers 409 with
    ``VERSION_EXISTS`` or ``VERSION_PROCESSING``.
    """

    try:
        handle = lifecycle.init_version(
            db=db,
            dataset_code=body.dataset_code,
            version_tag=body.version_tag,
            source_note=body.source_note,
            metadata=body.metadata,
        )
    except VersionConflictError as exc:
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=exc.to_dict())
    except IrradianceIngestionError as exc:
        raise to_http_exception(exc) from exc

    return VersionInitResponse(version_id=handle.version_id, dataset_id=handle.dataset_id)


@router.post("/{version_id}/batch", response_model=VersionBatchResponse)
def submit_batch(
    version_id: UUID,
    body: VersionBatchRequest,
    db: Session = Depends(get_db),
    ingestion: BatchIngestionService = Depends(get_batch_ingestion_service),
) -> VersionBatchResponse:
    try:
        accepted = ingestion.submit_batch(
            db=db,
            version_id=version_id,
            rows=[row.to_row() for row in body.rows],
        )
    except IrradianceIngestionError as exc:
        raise to_http_exception(exc) from exc
    return VersionBatchResponse(accepted_count=accepted)


@router.post("/{version_id}/finalize", response_model=VersionActionResponse)
def finalize_version(
    version_id: UUID,
    body: VersionFinalizeRequest,
    db: Session = Depends(get_db),
    lifecycle: VersionLifecycleService = Depends(get_version_lifecycle_service),
) -> VersionActionResponse:
    try:
        if body.dataset_id is not None:
            version = lifecycle.get_version(db=db, version_id=version_id)
            if version.dataset_id != body.dataset_id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Version {version_id} does not belong to dataset {body.dataset_id}.",
                )
        superseded = lifecycle.finalize_version(
            db=db,
            version_id=version_id,
            row_count=body.row_count,
            checksum=body.checksum,
            metadata={"has_dhi": body.has_dhi, "has_dni": body.has_dni},
        )
    except IrradianceIngestionError as exc:
        raise to_http_exception(exc) from exc
    return VersionActionResponse(ok=True, superseded=superseded)


@router.post("/{version_id}/abort", response_model=VersionActionResponse)
def abort_version(
    version_id: UUID,
    body: VersionAbortRequest,
    db: Session = Depends(get_db),
    lifecycle: VersionLifecycleService = Depends(get_version_lifecycle_service),
) -> VersionActionResponse:
    """
    Fail a processing version. Aborting a terminal version is a no-op.
    """

    try:
        lifecycle.abort_version(db=db, version_id=version_id, error_message=body.error)
    except IrradianceIngestionError as exc:
        raise to_http_exception(exc) from exc
    return VersionActionResponse(ok=True)


@router.get("/{version_id}", response_model=VersionResponse)
def get_version(
    version_id: UUID,
    db: Session = Depends(get_db),
    lifecycle: VersionLifecycleService = Depends(get_version_lifecycle_service),
) -> VersionResponse:
    try:
        version = lifecycle.get_version(db=db, version_id=version_id)
    except IrradianceIngestionError as exc:
        raise to_http_exception(exc) from exc
    return VersionResponse.model_validate(version)


@router.get("/{version_id}/integrity", response_model=IntegrityReportResponse)
def audit_version(
    version_id: UUID,
    db: Session = Depends(get_db),
    auditor: IntegrityAuditService = Depends(get_integrity_audit_service),
) -> IntegrityReportResponse:
    try:
        report = auditor.audit(db=db, version_id=version_id)
    except IrradianceIngestionError as exc:
        raise to_http_exception(exc) from exc

    stats = report.stats
    return IntegrityReportResponse(
        version_id=report.version_id,
        summary=report.summary,
        checks=[GradedCheckResponse(**check.to_dict()) for check in report.checks],
        stats=IntegrityStatsResponse(
            actual_points=stats.actual_points,
            min_lat=stats.min_lat,
            max_lat=stats.max_lat,
            min_lon=stats.min_lon,
            max_lon=stats.max_lon,
            has_dhi=stats.has_dhi,
        ),
    )
