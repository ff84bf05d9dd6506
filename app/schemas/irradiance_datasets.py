"""
app/schemas/irradiance_datasets.py

Schemas for the dataset catalog, purge and point lookup endpoints.
"""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, Field


class DatasetResponse(BaseModel):
    code: str
    name: str
    provider: str
    source_type: str | None = None
    description: str | None = None
    resolution_km: float | None = None
    default_unit: str
    dataset_id: UUID | None = None
    registered: bool = Field(..., description="Whether the dataset row exists in the store")
    active_version_id: UUID | None = None
    active_version_tag: str | None = None


class DatasetListResponse(BaseModel):
    datasets: list[DatasetResponse] = Field(default_factory=list)


class PurgeErrorResponse(BaseModel):
    step: str
    target: str
    detail: str


class PurgeReportResponse(BaseModel):
    dataset_id: UUID
    ok: bool
    versions: list[UUID] = Field(default_factory=list)
    points_deleted: int = Field(..., ge=0)
    cache_deleted: int = Field(..., ge=0)
    jobs_deleted: int = Field(..., ge=0)
    versions_deleted: int = Field(..., ge=0)
    errors: list[PurgeErrorResponse] = Field(default_factory=list)


class LookupResponse(BaseModel):
    dataset_code: str
    version_id: UUID
    lat: float
    lon: float
    point_lat: float
    point_lon: float
    distance_km: float
    ghi: list[float | None]
    dhi: list[float | None] | None = None
    dni: list[float | None] | None = None
    cache_hit: bool
