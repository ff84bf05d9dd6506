"""
app/services/csv_merge_service.py

Parsing and merging of irradiance CSV files.

One call turns one or more raw files (a primary GHI file plus optional
diffuse and direct-normal files over the same grid) into a single
``MergedRowSet`` keyed by coordinate. Malformed headers raise
``CSVValidationError``; bad rows are dropped or blanked and reported as
``RowIssue`` entries.
"""

from __future__ import annotations

import csv
import io
import logging
from collections.abc import Sequence
from datetime import datetime
from functools import lru_cache
from typing import Any

from app.config import get_ingestion_settings
from app.domain.errors import CSVValidationError
from app.domain.irradiance import (
    Component,
    IrradianceRow,
    IssueSeverity,
    MergedRowSet,
    ParsedFile,
    RowIssue,
)
from app.mappers.header_mapper import HeaderMapper, detect_component, detect_delimiter
from app.services.checksum_service import format_number
from app.validators.point_row_validator import PointRowValidator
from db.models.irradiance_point import DHI_COLUMNS, DNI_COLUMNS, MONTH_KEYS, PRIMARY_COLUMNS

logger = logging.getLogger(__name__)

UNIT_KWH = "kwh_m2_day"
UNIT_WH = "wh_m2_day"

# Mean monthly value above which a file is taken to be in Wh/m2/day.
WH_DETECTION_THRESHOLD = 50.0

# Coordinate-key disagreement across files tolerated before warning, in percent.
KEYS_MATCH_TOLERANCE_PCT = 0.5

_COLUMNS_BY_COMPONENT: dict[str, tuple[str, ...]] = {
    Component.PRIMARY: PRIMARY_COLUMNS,
    Component.DIFFUSE: DHI_COLUMNS,
    Component.DIRECT_NORMAL: DNI_COLUMNS,
}

InputFile = tuple[str, str | bytes]


def coordinate_key(lat: float, lon: float) -> str:
    return f"{format_number(lat)}|{format_number(lon)}"


def generate_version_tag(prefix: str = "atlas", *, now: datetime | None = None) -> str:
    """
    Build a default version tag, e.g. ``atlas-import-20240531-1405``.
    """

    moment = now or datetime.now()
    return f"{prefix}-import-{moment:%Y%m%d-%H%M}"


class IrradianceCSVParser:
    """
    Coordinates header resolution, row validation and multi-file merging.
    """

    def __init__(
        self,
        *,
        max_row_issues: int,
        log_row_issues: bool,
        header_mapper: HeaderMapper | None = None,
        validator: PointRowValidator | None = None,
    ) -> None:
        self._max_row_issues = max(1, max_row_issues)
        self._log_row_issues = log_row_issues
        self._header_mapper = header_mapper or HeaderMapper()
        self._validator = validator or PointRowValidator()

    def parse_files(self, files: Sequence[InputFile]) -> MergedRowSet:
        """
        Parse every file, then merge them in the order given.

        Header problems in any file abort the whole call before anything
        is merged.
        """

        if not files:
            raise CSVValidationError("At least one CSV file is required.")
        parsed = [self.parse_file(content, file_name=file_name) for file_name, content in files]
        return self.merge(parsed)

    def check_headers(self, files: Sequence[InputFile]) -> None:
        """
        Resolve the header of every file without reading its rows.

        Lets callers reject malformed files synchronously, before a job
        or version exists.
        """

        if not files:
            raise CSVValidationError("At least one CSV file is required.")
        for file_name, content in files:
            text = self._decode(content, file_name=file_name)
            header_line = next((line for line in text.splitlines() if line.strip()), None)
            if header_line is None:
                raise CSVValidationError(f"{file_name}: file is empty.", file_name=file_name)
            try:
                header = next(csv.reader([header_line], delimiter=detect_delimiter(header_line)))
            except csv.Error as exc:
                raise CSVValidationError(f"{file_name}: invalid CSV header: {exc}", file_name=file_name) from exc
            self._header_mapper.resolve(header, file_name=file_name)

    def parse_file(self, content: str | bytes, *, file_name: str) -> ParsedFile:
        text = self._decode(content, file_name=file_name)
        lines = [line for line in text.splitlines() if line.strip()]
        if len(lines) < 2:
            raise CSVValidationError(f"{file_name}: file is empty or has only a header.", file_name=file_name)

        delimiter = detect_delimiter(lines[0])
        component = detect_component(file_name)
        issues: list[RowIssue] = []

        try:
            reader = csv.reader(io.StringIO(text), delimiter=delimiter)
            header: list[str] | None = None
            rows: list[dict[str, Any]] = []
            dropped = 0
            for line_number, cells in enumerate(reader, start=1):
                if not any(cell.strip() for cell in cells):
                    continue
                if header is None:
                    header = cells
                    resolution = self._header_mapper.resolve(header, file_name=file_name)
                    ignored = [token for token in resolution.ignored if token]
                    if ignored:
                        logger.info("Irradiance header columns ignored file=%s columns=%s", file_name, ignored)
                    continue
                row, row_issues = self._validator.validate_row(
                    cells=cells,
                    header=resolution,
                    line=line_number,
                    file_name=file_name,
                )
                issues.extend(row_issues)
                if row is None:
                    dropped += 1
                    continue
                row["line"] = line_number
                rows.append(row)
        except csv.Error as exc:
            raise CSVValidationError(f"{file_name}: invalid CSV format: {exc}", file_name=file_name) from exc

        unit = self._normalize_unit(rows)
        if unit == UNIT_WH:
            logger.info("Irradiance file converted from Wh to kWh file=%s rows=%s", file_name, len(rows))

        logger.info(
            "Irradiance file parsed file=%s component=%s delimiter=%r rows=%s dropped=%s issues=%s",
            file_name,
            component,
            delimiter,
            len(rows),
            dropped,
            len(issues),
        )
        return ParsedFile(
            file_name=file_name,
            component=component,
            delimiter=delimiter,
            unit=unit,
            rows=rows,
            issues=issues,
            dropped_rows=dropped,
        )

    def merge(self, parsed_files: Sequence[ParsedFile]) -> MergedRowSet:
        """
        Join rows by coordinate key. A file fills only the columns its
        component owns and never overwrites a value already filled for
        the same key. Output order is first appearance of each key.
        """

        merged: dict[str, IrradianceRow] = {}
        origins: dict[str, tuple[str, int]] = {}
        captured: list[RowIssue] = []
        dropped_rows = 0
        file_row_counts: dict[str, int] = {}
        key_sets: list[set[str]] = []

        for parsed in parsed_files:
            dropped_rows += parsed.dropped_rows
            for issue in parsed.issues:
                self._record_issue(captured, issue)

            owned = _COLUMNS_BY_COMPONENT[parsed.component]
            seen: set[str] = set()
            file_row_counts[parsed.file_name] = len(parsed.rows)

            for row in parsed.rows:
                key = coordinate_key(row["lat"], row["lon"])
                if key in seen:
                    self._record_issue(
                        captured,
                        RowIssue(
                            file_name=parsed.file_name,
                            line=row["line"],
                            severity=IssueSeverity.WARNING,
                            message=f"Duplicate coordinate {key}; earlier values kept.",
                        ),
                    )
                seen.add(key)

                target = merged.get(key)
                if target is None:
                    target = {"lat": row["lat"], "lon": row["lon"]}
                    merged[key] = target
                    origins[key] = (parsed.file_name, row["line"])
                for column, value in zip(owned, row["values"]):
                    if target.get(column) is None and value is not None:
                        target[column] = value
            key_sets.append(seen)

        has_dhi = any(row.get(column) is not None for row in merged.values() for column in DHI_COLUMNS)
        has_dni = any(row.get(column) is not None for row in merged.values() for column in DNI_COLUMNS)

        rows: list[IrradianceRow] = []
        for key, raw in merged.items():
            row = self._shape_row(raw, has_dhi=has_dhi, has_dni=has_dni)
            if all(row[column] is None for column in MONTH_KEYS):
                file_name, line = origins[key]
                self._record_issue(
                    captured,
                    RowIssue(
                        file_name=file_name,
                        line=line,
                        severity=IssueSeverity.WARNING,
                        message=f"No primary monthly values for coordinate {key}.",
                    ),
                )
            rows.append(row)

        keys_diff_pct = _keys_diff_pct(key_sets)
        keys_match = keys_diff_pct <= KEYS_MATCH_TOLERANCE_PCT
        if not keys_match:
            self._record_issue(
                captured,
                RowIssue(
                    file_name=", ".join(parsed.file_name for parsed in parsed_files),
                    line=0,
                    severity=IssueSeverity.WARNING,
                    message=f"Coordinate keys differ across files by {keys_diff_pct:.2f}%.",
                ),
            )

        logger.info(
            "Irradiance files merged files=%s rows=%s has_dhi=%s has_dni=%s dropped=%s keys_diff_pct=%.3f",
            len(parsed_files),
            len(rows),
            has_dhi,
            has_dni,
            dropped_rows,
            keys_diff_pct,
        )
        return MergedRowSet(
            rows=rows,
            has_dhi=has_dhi,
            has_dni=has_dni,
            issues=captured,
            files=[parsed.file_name for parsed in parsed_files],
            file_row_counts=file_row_counts,
            keys_diff_pct=keys_diff_pct,
            keys_match=keys_match,
            dropped_rows=dropped_rows,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _decode(content: str | bytes, *, file_name: str) -> str:
        if isinstance(content, bytes):
            try:
                return content.decode("utf-8-sig")
            except UnicodeDecodeError as exc:
                raise CSVValidationError(f"{file_name}: CSV must be UTF-8 encoded.", file_name=file_name) from exc
        return content.lstrip("\ufeff")

    @staticmethod
    def _normalize_unit(rows: list[dict[str, Any]]) -> str:
        values = [value for row in rows for value in row["values"] if value is not None]
        if not values or sum(values) / len(values) <= WH_DETECTION_THRESHOLD:
            return UNIT_KWH
        for row in rows:
            row["values"] = [None if value is None else value / 1000.0 for value in row["values"]]
        return UNIT_WH

    @staticmethod
    def _shape_row(raw: IrradianceRow, *, has_dhi: bool, has_dni: bool) -> IrradianceRow:
        row: IrradianceRow = {"lat": raw["lat"], "lon": raw["lon"]}
        for column in PRIMARY_COLUMNS:
            row[column] = raw.get(column)
        if has_dhi:
            for column in DHI_COLUMNS:
                row[column] = raw.get(column)
        if has_dni:
            for column in DNI_COLUMNS:
                row[column] = raw.get(column)
        return row

    def _record_issue(self, captured: list[RowIssue], issue: RowIssue) -> None:
        if self._log_row_issues:
            logger.warning(
                "Irradiance row issue file=%s line=%s severity=%s message=%s value=%r",
                issue.file_name,
                issue.line,
                issue.severity,
                issue.message,
                issue.value,
            )

        if len(captured) < self._max_row_issues:
            captured.append(issue)


def _keys_diff_pct(key_sets: list[set[str]]) -> float:
    if len(key_sets) < 2:
        return 0.0
    max_keys = max(len(keys) for keys in key_sets)
    if max_keys == 0:
        return 0.0
    shared = len(set.intersection(*key_sets))
    return (max_keys - shared) / max_keys * 100.0


@lru_cache(maxsize=1)
def get_csv_parser() -> IrradianceCSVParser:
    """
    Build and cache the parser with env-driven settings.
    """
    settings = get_ingestion_settings()
    return IrradianceCSVParser(
        max_row_issues=settings.max_row_issues,
        log_row_issues=settings.log_row_issues,
    )
