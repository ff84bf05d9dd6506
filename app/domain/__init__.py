"""
app/domain package marker.
"""

from app.domain.errors import (
    ConflictKind,
    CSVValidationError,
    DatasetNotFoundError,
    ImportJobNotFoundError,
    InvalidVersionTransitionError,
    IrradianceIngestionError,
    PointNotFoundError,
    PurgeStepError,
    TransientIngestionError,
    VersionConflictError,
    VersionNotFoundError,
)
from app.domain.irradiance import (
    GradedCheck,
    IngestionProgress,
    IntegrityReport,
    LookupResult,
    MergedRowSet,
    PurgeReport,
    RowIssue,
    Severity,
    VersionHandle,
)
from app.domain.version_state import DEFAULT_STATE_MACHINE, VersionAction, VersionStateMachine

__all__ = [
    "ConflictKind",
    "CSVValidationError",
    "DatasetNotFoundError",
    "DEFAULT_STATE_MACHINE",
    "GradedCheck",
    "ImportJobNotFoundError",
    "IngestionProgress",
    "IntegrityReport",
    "InvalidVersionTransitionError",
    "IrradianceIngestionError",
    "LookupResult",
    "MergedRowSet",
    "PointNotFoundError",
    "PurgeReport",
    "PurgeStepError",
    "RowIssue",
    "Severity",
    "TransientIngestionError",
    "VersionAction",
    "VersionConflictError",
    "VersionHandle",
    "VersionNotFoundError",
    "VersionStateMachine",
]
