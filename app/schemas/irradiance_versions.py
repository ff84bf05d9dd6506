"""
app/schemas/irradiance_versions.py

Request/response schemas for the version lifecycle protocol and the
integrity audit.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from db.models.irradiance_point import DHI_COLUMNS, DNI_COLUMNS, PRIMARY_COLUMNS

_SERIES_COLUMNS = frozenset(PRIMARY_COLUMNS) | frozenset(DHI_COLUMNS) | frozenset(DNI_COLUMNS)


class VersionInitRequest(BaseModel):
    dataset_code: str = Field(..., min_length=1, max_length=64)
    version_tag: str = Field(..., min_length=1, max_length=128)
    source_note: str | None = None
    metadata: dict[str, Any] | None = None


class VersionInitResponse(BaseModel):
    version_id: UUID
    dataset_id: UUID


class VersionConflictResponse(BaseModel):
    """
    Body of a 409 from ``init``. ``error`` is VERSION_EXISTS or
    VERSION_PROCESSING.
    """

    error: str
    message: str


class PointRowPayload(BaseModel):
    """
    One merged point: ``lat``, ``lon`` and any of ``m01..m12``,
    ``dhi_m01..dhi_m12``, ``dni_m01..dni_m12``.
    """

    model_config = ConfigDict(extra="allow")

    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)

    @model_validator(mode="after")
    def _check_series_columns(self) -> "PointRowPayload":
        for key, value in (self.model_extra or {}).items():
            if key not in _SERIES_COLUMNS:
                raise ValueError(f"Unknown column '{key}'")
            if value is not None and not isinstance(value, (int, float)):
                raise ValueError(f"Column '{key}' must be numeric or null")
        return self

    def to_row(self) -> dict[str, Any]:
        row: dict[str, Any] = {"lat": self.lat, "lon": self.lon}
        for key, value in (self.model_extra or {}).items():
            row[key] = None if value is None else float(value)
        return row


class VersionBatchRequest(BaseModel):
    rows: list[PointRowPayload] = Field(default_factory=list)


class VersionBatchResponse(BaseModel):
    accepted_count: int = Field(..., ge=0)


class VersionFinalizeRequest(BaseModel):
    dataset_id: UUID | None = None
    row_count: int = Field(..., ge=0)
    checksum: str | None = None
    has_dhi: bool = False
    has_dni: bool = False


class VersionAbortRequest(BaseModel):
    error: str = Field(..., min_length=1)


class VersionActionResponse(BaseModel):
    ok: bool = True
    superseded: list[UUID] = Field(default_factory=list)


class VersionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    dataset_id: UUID
    version_tag: str
    status: str
    row_count: int
    checksum_sha256: str | None = None
    source_note: str | None = None
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="meta")
    ingested_at: datetime | None = None
    created_at: datetime


class GradedCheckResponse(BaseModel):
    label: str
    severity: str
    detail: str
    suggested_action: str | None = None


class IntegrityStatsResponse(BaseModel):
    actual_points: int
    min_lat: float | None = None
    max_lat: float | None = None
    min_lon: float | None = None
    max_lon: float | None = None
    has_dhi: bool


class IntegrityReportResponse(BaseModel):
    version_id: UUID
    summary: str
    checks: list[GradedCheckResponse] = Field(default_factory=list)
    stats: IntegrityStatsResponse
