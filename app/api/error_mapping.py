"""
app/api/error_mapping.py

Translation of domain errors into HTTP errors, shared by the irradiance
routers.
"""

from __future__ import annotations

from fastapi import HTTPException, status

from app.domain.errors import (
    CSVValidationError,
    DatasetNotFoundError,
    ImportJobNotFoundError,
    InvalidVersionTransitionError,
    IrradianceIngestionError,
    PointNotFoundError,
    TransientIngestionError,
    VersionConflictError,
    VersionNotFoundError,
)

_STATUS_BY_ERROR: tuple[tuple[type[IrradianceIngestionError], int], ...] = (
    (CSVValidationError, status.HTTP_400_BAD_REQUEST),
    (DatasetNotFoundError, status.HTTP_404_NOT_FOUND),
    (VersionNotFoundError, status.HTTP_404_NOT_FOUND),
    (ImportJobNotFoundError, status.HTTP_404_NOT_FOUND),
    (PointNotFoundError, status.HTTP_404_NOT_FOUND),
    (VersionConflictError, status.HTTP_409_CONFLICT),
    (InvalidVersionTransitionError, status.HTTP_409_CONFLICT),
    (TransientIngestionError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def to_http_exception(exc: IrradianceIngestionError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
