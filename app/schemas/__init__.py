"""
app/schemas package marker.
"""

from app.schemas.irradiance_datasets import (
    DatasetListResponse,
    DatasetResponse,
    LookupResponse,
    PurgeErrorResponse,
    PurgeReportResponse,
)
from app.schemas.irradiance_imports import (
    ImportJobAcceptedResponse,
    ImportJobListResponse,
    ImportJobLogResponse,
    ImportJobLogsResponse,
    ImportJobStatusResponse,
)
from app.schemas.irradiance_versions import (
    GradedCheckResponse,
    IntegrityReportResponse,
    IntegrityStatsResponse,
    PointRowPayload,
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

__all__ = [
    "DatasetListResponse",
    "DatasetResponse",
    "GradedCheckResponse",
    "ImportJobAcceptedResponse",
    "ImportJobListResponse",
    "ImportJobLogResponse",
    "ImportJobLogsResponse",
    "ImportJobStatusResponse",
    "IntegrityReportResponse",
    "IntegrityStatsResponse",
    "LookupResponse",
    "PointRowPayload",
    "PurgeErrorResponse",
    "PurgeReportResponse",
    "VersionAbortRequest",
    "VersionActionResponse",
    "VersionBatchRequest",
    "VersionBatchResponse",
    "VersionConflictResponse",
    "VersionFinalizeRequest",
    "VersionInitRequest",
    "VersionInitResponse",
    "VersionResponse",
]
