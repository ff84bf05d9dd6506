"""
app/api/routers/irradiance_datasets.py

Dataset catalog, purge and nearest-point lookup endpoints.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.error_mapping import to_http_exception
from app.domain.errors import IrradianceIngestionError
from app.domain.irradiance import PurgeReport
from app.registry import list_definitions
from app.schemas.irradiance_datasets import (
    DatasetListResponse,
    DatasetResponse,
    LookupResponse,
    PurgeErrorResponse,
    PurgeReportResponse,
)
from app.services.lookup_service import IrradianceLookupService, get_lookup_service
from app.services.purge_service import PurgeService, get_purge_service
from db.models.irradiance_dataset import IrradianceDataset
from db.repositories.dataset_repository import DatasetRepository
from db.repositories.version_repository import VersionRepository
from db.session import get_db

router = APIRouter(prefix="/irradiance", tags=["irradiance-datasets"])


@router.get("/datasets", response_model=DatasetListResponse)
def list_datasets(db: Session = Depends(get_db)) -> DatasetListResponse:
    """
    Registry catalog joined with the stored dataset rows. Stored datasets
    missing from the registry are listed too.
    """

    stored = {dataset.code: dataset for dataset in DatasetRepository(db).list_datasets()}
    versions = VersionRepository(db)
    items: list[DatasetResponse] = []

    for definition in list_definitions():
        dataset = stored.pop(definition.code, None)
        items.append(
            _dataset_response(
                versions,
                dataset,
                code=definition.code,
                name=definition.name,
                provider=definition.provider,
                source_type=definition.source_type,
                description=definition.description,
                resolution_km=definition.resolution_km,
                default_unit=definition.default_unit,
            )
        )
    for dataset in stored.values():
        items.append(
            _dataset_response(
                versions,
                dataset,
                code=dataset.code,
                name=dataset.name,
                provider=dataset.provider,
                resolution_km=dataset.resolution_km,
                default_unit=dataset.default_unit,
            )
        )

    return DatasetListResponse(datasets=items)


@router.delete("/datasets/{dataset_id}", response_model=PurgeReportResponse)
def purge_dataset(
    dataset_id: UUID,
    atomic: bool = Query(default=False, description="Run the whole purge in one transaction"),
    db: Session = Depends(get_db),
    purge_service: PurgeService = Depends(get_purge_service),
) -> PurgeReportResponse:
    try:
        report = purge_service.purge(db=db, dataset_id=dataset_id, atomic=atomic)
    except IrradianceIngestionError as exc:
        raise to_http_exception(exc) from exc
    return _purge_response(report)


@router.get("/lookup", response_model=LookupResponse)
def lookup_point(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    dataset_code: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    lookup_service: IrradianceLookupService = Depends(get_lookup_service),
) -> LookupResponse:
    try:
        result = lookup_service.lookup(db=db, dataset_code=dataset_code, lat=lat, lon=lon)
    except IrradianceIngestionError as exc:
        raise to_http_exception(exc) from exc
    return LookupResponse(
        dataset_code=result.dataset_code,
        version_id=result.version_id,
        lat=result.lat,
        lon=result.lon,
        point_lat=result.point_lat,
        point_lon=result.point_lon,
        distance_km=result.distance_km,
        ghi=result.ghi,
        dhi=result.dhi,
        dni=result.dni,
        cache_hit=result.cache_hit,
    )


def _dataset_response(
    versions: VersionRepository,
    dataset: IrradianceDataset | None,
    **fields: object,
) -> DatasetResponse:
    active = versions.active_for_dataset(dataset.id) if dataset is not None else None
    return DatasetResponse(
        **fields,
        dataset_id=dataset.id if dataset is not None else None,
        registered=dataset is not None,
        active_version_id=active.id if active is not None else None,
        active_version_tag=active.version_tag if active is not None else None,
    )


def _purge_response(report: PurgeReport) -> PurgeReportResponse:
    return PurgeReportResponse(
        dataset_id=report.dataset_id,
        ok=report.ok,
        versions=report.versions,
        points_deleted=report.points_deleted,
        cache_deleted=report.cache_deleted,
        jobs_deleted=report.jobs_deleted,
        versions_deleted=report.versions_deleted,
        errors=[
            PurgeErrorResponse(step=error.step, target=error.target, detail=error.detail)
            for error in report.errors
        ],
    )
