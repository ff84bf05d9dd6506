"""
app/domain/errors.py

Exception hierarchy for the irradiance ingestion pipeline.

Callers branch on exception type (and ``ConflictKind``), never on
message text.
"""

from __future__ import annotations

import enum
import uuid


class IrradianceIngestionError(Exception):
    """Base exception for irradiance ingestion failures."""


class CSVValidationError(IrradianceIngestionError):
    """
    Raised for malformed input files (missing header, lat/lon or month
    columns). Always raised before any version is created.
    """

    def __init__(self, message: str, *, file_name: str | None = None) -> None:
        super().__init__(message)
        self.file_name = file_name


class ConflictKind(str, enum.Enum):
    VERSION_EXISTS = "VERSION_EXISTS"
    VERSION_PROCESSING = "VERSION_PROCESSING"


class VersionConflictError(IrradianceIngestionError):
    """
    Idempotency signal from ``init_version``: the (dataset, tag) key is
    already taken. Not a failure; callers treat it as "nothing to do" or
    "already in progress".
    """

    def __init__(
        self,
        kind: ConflictKind,
        *,
        dataset_code: str,
        version_tag: str,
        version_id: uuid.UUID | None = None,
    ) -> None:
        self.kind = kind
        self.dataset_code = dataset_code
        self.version_tag = version_tag
        self.version_id = version_id
        super().__init__(self._describe())

    def _describe(self) -> str:
        if self.kind is ConflictKind.VERSION_PROCESSING:
            return (
                f"Version '{self.version_tag}' of {self.dataset_code} is already being "
                "processed. Wait for it to finish."
            )
        return f"Version '{self.version_tag}' of {self.dataset_code} already exists."

    def to_dict(self) -> dict[str, str]:
        return {"error": self.kind.value, "message": str(self)}


class InvalidVersionTransitionError(IrradianceIngestionError):
    """Raised when a protocol action does not match the version's current state."""

    def __init__(self, *, version_id: uuid.UUID, status: str, action: str) -> None:
        super().__init__(f"Action '{action}' is not allowed for version {version_id} in status '{status}'.")
        self.version_id = version_id
        self.status = status
        self.action = action


class DatasetNotFoundError(IrradianceIngestionError):
    """Raised when a dataset code or id is not registered."""


class VersionNotFoundError(IrradianceIngestionError):
    """Raised when a dataset version id does not exist."""


class ImportJobNotFoundError(IrradianceIngestionError):
    """Raised when an import job id does not exist."""


class TransientIngestionError(IrradianceIngestionError):
    """
    Raised when a storage write fails mid-ingestion. The version must be
    aborted and re-ingested from scratch.
    """

    def __init__(self, message: str, *, submitted: int = 0) -> None:
        super().__init__(message)
        self.submitted = submitted


class PurgeStepError(IrradianceIngestionError):
    """
    One failed purge step. Collected into the purge report rather than
    raised, so the remaining steps still run.
    """

    def __init__(self, *, step: str, target: str, detail: str) -> None:
        super().__init__(f"Purge step '{step}' failed for {target}: {detail}")
        self.step = step
        self.target = target
        self.detail = detail


class PointNotFoundError(IrradianceIngestionError):
    """Raised when no stored point lies within the lookup radius."""
