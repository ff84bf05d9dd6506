"""
app/services/integrity_audit_service.py

Rule-based integrity audit of a dataset version.

Each check is evaluated independently and graded ok / info / warning /
error; the audit never stops at the first failure and never changes the
version. Labels follow the admin console vocabulary:

    Status       lifecycle state of the version
    Pontos       recorded row_count against stored points
    Cobertura    bounding box of stored points against the expected area
    DHI          availability of the diffuse component
    Checksum     presence of the content hash
    Versão ativa number of active versions of the dataset
"""

from __future__ import annotations

import logging
import uuid
from functools import lru_cache

from sqlalchemy.orm import Session

from app.config import AuditSettings, get_audit_settings
from app.domain.errors import VersionNotFoundError
from app.domain.irradiance import (
    CoverageBox,
    GradedCheck,
    IntegrityReport,
    IntegrityStats,
    Severity,
)
from app.registry import get_definition
from db.models.irradiance_dataset_version import IrradianceDatasetVersion, VersionStatus
from db.repositories.dataset_repository import DatasetRepository
from db.repositories.point_repository import PointExtent, PointRepository
from db.repositories.version_repository import VersionRepository

logger = logging.getLogger(__name__)

LABEL_STATUS = "Status"
LABEL_POINTS = "Pontos"
LABEL_COVERAGE = "Cobertura"
LABEL_DHI = "DHI"
LABEL_CHECKSUM = "Checksum"
LABEL_ACTIVE = "Versão ativa"

ACTION_RERUN = "Re-run ingestion."


def summarize(checks: list[GradedCheck]) -> str:
    """
    Roll checks up to ``"N errors"``, ``"N warnings"`` or ``"all clear"``.
    """

    errors = sum(1 for check in checks if check.severity == Severity.ERROR)
    if errors:
        return f"{errors} errors"
    warnings = sum(1 for check in checks if check.severity == Severity.WARNING)
    if warnings:
        return f"{warnings} warnings"
    return "all clear"


def worst_severity(checks: list[GradedCheck]) -> str:
    if not checks:
        return Severity.OK
    return max((check.severity for check in checks), key=Severity.PRIORITY.__getitem__)


class IntegrityAuditService:
    def __init__(self, *, settings: AuditSettings) -> None:
        self._settings = settings

    def audit(self, *, db: Session, version_id: uuid.UUID) -> IntegrityReport:
        version = VersionRepository(db).get(version_id)
        if version is None:
            raise VersionNotFoundError(f"Version not found: {version_id}")

        points = PointRepository(db)
        extent = points.extent(version_id)
        has_dhi = points.has_component(version_id, prefix="dhi_")
        processing = version.status == VersionStatus.PROCESSING

        checks = [
            self._check_status(version),
            self._check_points(version, extent, processing=processing),
            self._check_coverage(db, version, extent, processing=processing),
        ]
        if not processing:
            checks.append(self._check_dhi(has_dhi))
        checks.append(self._check_checksum(version, processing=processing))
        checks.append(self._check_active_versions(db, version))

        stats = IntegrityStats(
            actual_points=extent.count,
            min_lat=extent.min_lat,
            max_lat=extent.max_lat,
            min_lon=extent.min_lon,
            max_lon=extent.max_lon,
            has_dhi=has_dhi,
        )
        summary = summarize(checks)
        logger.info(
            "Integrity audit version_id=%s status=%s points=%s summary=%s",
            version_id,
            version.status,
            extent.count,
            summary,
        )
        return IntegrityReport(version_id=version_id, checks=checks, stats=stats, summary=summary)

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    @staticmethod
    def _check_status(version: IrradianceDatasetVersion) -> GradedCheck:
        if version.status == VersionStatus.ACTIVE:
            return GradedCheck(LABEL_STATUS, Severity.OK, "Version is active.")
        if version.status == VersionStatus.PROCESSING:
            return GradedCheck(LABEL_STATUS, Severity.INFO, "Ingestion in progress; partial data until completion.")
        if version.status == VersionStatus.FAILED:
            error = (version.meta or {}).get("error")
            detail = f"Ingestion failed: {error}" if error else "Ingestion failed."
            return GradedCheck(LABEL_STATUS, Severity.ERROR, detail, ACTION_RERUN)
        if version.status == VersionStatus.DEPRECATED:
            return GradedCheck(LABEL_STATUS, Severity.INFO, "Version was superseded by a newer one.")
        return GradedCheck(LABEL_STATUS, Severity.WARNING, f"Unexpected status '{version.status}'.")

    @staticmethod
    def _check_points(version: IrradianceDatasetVersion, extent: PointExtent, *, processing: bool) -> GradedCheck:
        recorded = version.row_count or 0
        actual = extent.count
        if actual == 0:
            return GradedCheck(LABEL_POINTS, Severity.ERROR, f"No points stored (recorded {recorded}).", ACTION_RERUN)
        if recorded == actual:
            return GradedCheck(LABEL_POINTS, Severity.OK, f"{actual} points stored.")
        if processing:
            return GradedCheck(LABEL_POINTS, Severity.INFO, f"{actual} of {recorded} points stored so far.")
        return GradedCheck(
            LABEL_POINTS,
            Severity.WARNING,
            f"Recorded {recorded} points but {actual} are stored.",
            ACTION_RERUN,
        )

    def _check_coverage(
        self,
        db: Session,
        version: IrradianceDatasetVersion,
        extent: PointExtent,
        *,
        processing: bool,
    ) -> GradedCheck:
        partial = Severity.INFO if processing else Severity.ERROR
        if extent.count == 0 or extent.min_lat is None:
            return GradedCheck(LABEL_COVERAGE, partial, "No points stored; coverage cannot be evaluated.")

        box = self._expected_coverage(db, version)
        missing = box.missing_edges(
            min_lat=extent.min_lat,
            max_lat=extent.max_lat,
            min_lon=extent.min_lon,
            max_lon=extent.max_lon,
            tolerance=self._settings.tolerance_deg,
        )
        observed = (
            f"lat [{extent.min_lat:.2f}, {extent.max_lat:.2f}], "
            f"lon [{extent.min_lon:.2f}, {extent.max_lon:.2f}]"
        )
        if not missing:
            return GradedCheck(LABEL_COVERAGE, Severity.OK, f"Full coverage: {observed}.")
        detail = f"Missing {', '.join(missing)} edge(s): {observed}."
        if processing:
            return GradedCheck(LABEL_COVERAGE, Severity.INFO, detail)
        return GradedCheck(LABEL_COVERAGE, Severity.ERROR, detail, "Check the source files for missing regions.")

    @staticmethod
    def _check_dhi(has_dhi: bool) -> GradedCheck:
        if has_dhi:
            return GradedCheck(LABEL_DHI, Severity.OK, "Diffuse component available.")
        return GradedCheck(
            LABEL_DHI,
            Severity.WARNING,
            "Diffuse component absent; transposition will use a decomposition model.",
            "Import the diffuse (DHI) file with the next version.",
        )

    @staticmethod
    def _check_checksum(version: IrradianceDatasetVersion, *, processing: bool) -> GradedCheck:
        if version.checksum_sha256:
            return GradedCheck(LABEL_CHECKSUM, Severity.OK, f"SHA-256 {version.checksum_sha256[:12]}...")
        if processing:
            return GradedCheck(LABEL_CHECKSUM, Severity.INFO, "Checksum is computed when the version is finalized.")
        return GradedCheck(
            LABEL_CHECKSUM,
            Severity.WARNING,
            "Checksum missing; version may not have finished finalizing correctly.",
            ACTION_RERUN,
        )

    @staticmethod
    def _check_active_versions(db: Session, version: IrradianceDatasetVersion) -> GradedCheck:
        active = VersionRepository(db).count_active(version.dataset_id)
        if active > 1:
            return GradedCheck(
                LABEL_ACTIVE,
                Severity.WARNING,
                f"{active} active versions for this dataset.",
                "Deprecate all but the latest active version.",
            )
        if active == 0:
            return GradedCheck(LABEL_ACTIVE, Severity.INFO, "Dataset has no active version.")
        return GradedCheck(LABEL_ACTIVE, Severity.OK, "Exactly one active version.")

    def _expected_coverage(self, db: Session, version: IrradianceDatasetVersion) -> CoverageBox:
        dataset = DatasetRepository(db).get(version.dataset_id)
        definition = get_definition(dataset.code) if dataset is not None else None
        if definition is not None and definition.coverage is not None:
            return definition.coverage
        return CoverageBox(
            min_lat=self._settings.min_lat,
            max_lat=self._settings.max_lat,
            min_lon=self._settings.min_lon,
            max_lon=self._settings.max_lon,
        )


@lru_cache(maxsize=1)
def get_integrity_audit_service() -> IntegrityAuditService:
    return IntegrityAuditService(settings=get_audit_settings())
