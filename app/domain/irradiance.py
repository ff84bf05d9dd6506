"""
app/domain/irradiance.py

Domain models shared by the irradiance parsing, ingestion, audit and
purge flows.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

from app.domain.errors import PurgeStepError

# A merged row: lat, lon, m01..m12 and, when present, dhi_m01.. / dni_m01..
IrradianceRow = dict[str, Any]


class Component:
    """Irradiance quantity carried by one input file."""

    PRIMARY = "primary"
    DIFFUSE = "diffuse"
    DIRECT_NORMAL = "direct_normal"


class IssueSeverity:
    ERROR = "error"
    WARNING = "warning"


class Severity:
    """Audit check severities, in increasing priority."""

    OK = "ok"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    PRIORITY = {OK: 0, INFO: 1, WARNING: 2, ERROR: 3}


@dataclass(frozen=True)
class RowIssue:
    """
    One row-level problem found while parsing or merging.
    """

    file_name: str
    line: int
    severity: str
    message: str
    value: str | None = None


@dataclass(frozen=True)
class ParsedFile:
    """
    Rows read from a single input file, before merging.
    """

    file_name: str
    component: str
    delimiter: str
    unit: str
    rows: list[IrradianceRow]
    issues: list[RowIssue] = field(default_factory=list)
    dropped_rows: int = 0


@dataclass(frozen=True)
class MergedRowSet:
    """
    Result of merging one or more parsed files by coordinate key.
    """

    rows: list[IrradianceRow]
    has_dhi: bool
    has_dni: bool
    issues: list[RowIssue] = field(default_factory=list)
    files: list[str] = field(default_factory=list)
    file_row_counts: dict[str, int] = field(default_factory=dict)
    keys_diff_pct: float = 0.0
    keys_match: bool = True
    dropped_rows: int = 0

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == IssueSeverity.ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == IssueSeverity.WARNING)


@dataclass(frozen=True)
class IngestionProgress:
    submitted: int
    total: int
    percent: int


@dataclass(frozen=True)
class VersionHandle:
    version_id: uuid.UUID
    dataset_id: uuid.UUID


@dataclass(frozen=True)
class GradedCheck:
    """
    One audit check with a severity grade and an optional remedy.
    """

    label: str
    severity: str
    detail: str
    suggested_action: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "severity": self.severity,
            "detail": self.detail,
            "suggested_action": self.suggested_action,
        }


@dataclass(frozen=True)
class IntegrityStats:
    actual_points: int
    min_lat: float | None
    max_lat: float | None
    min_lon: float | None
    max_lon: float | None
    has_dhi: bool


@dataclass(frozen=True)
class IntegrityReport:
    version_id: uuid.UUID
    checks: list[GradedCheck]
    stats: IntegrityStats
    summary: str


@dataclass(frozen=True)
class CoverageBox:
    """
    Expected geographic extent of a dataset, in degrees.
    """

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def missing_edges(
        self,
        *,
        min_lat: float,
        max_lat: float,
        min_lon: float,
        max_lon: float,
        tolerance: float,
    ) -> list[str]:
        """
        Name the edges of this box that the observed extent fails to reach.
        """
        missing: list[str] = []
        if max_lat < self.max_lat - tolerance:
            missing.append("north")
        if min_lat > self.min_lat + tolerance:
            missing.append("south")
        if max_lon < self.max_lon - tolerance:
            missing.append("east")
        if min_lon > self.min_lon + tolerance:
            missing.append("west")
        return missing


@dataclass
class PurgeReport:
    dataset_id: uuid.UUID
    versions: list[uuid.UUID] = field(default_factory=list)
    points_deleted: int = 0
    cache_deleted: int = 0
    jobs_deleted: int = 0
    versions_deleted: int = 0
    errors: list[PurgeStepError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class LookupResult:
    """
    Monthly series of the nearest stored point to a requested coordinate.
    """

    dataset_code: str
    version_id: uuid.UUID
    lat: float
    lon: float
    point_lat: float
    point_lon: float
    distance_km: float
    ghi: list[float | None]
    dhi: list[float | None] | None
    dni: list[float | None] | None
    cache_hit: bool
