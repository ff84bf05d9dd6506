"""
app/schemas/irradiance_imports.py

Schemas for import job trigger, status and log endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class ImportJobAcceptedResponse(BaseModel):
    job_id: UUID
    dataset_key: str
    status: str
    created_at: datetime


class ImportJobStatusResponse(BaseModel):
    job_id: UUID
    dataset_key: str
    status: str
    version_id: UUID | None = None
    row_count: int | None = None
    error_message: str | None = None
    request_payload: dict[str, Any] | None = None
    created_at: datetime
    started_at: datetime | None = None
    finished_at: datetime | None = None


class ImportJobListResponse(BaseModel):
    jobs: list[ImportJobStatusResponse] = Field(default_factory=list)


class ImportJobLogResponse(BaseModel):
    timestamp: datetime
    level: str
    message: str


class ImportJobLogsResponse(BaseModel):
    job_id: UUID
    logs: list[ImportJobLogResponse] = Field(default_factory=list)
