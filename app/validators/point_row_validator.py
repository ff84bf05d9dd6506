"""
app/validators/point_row_validator.py

Row-level validation and numeric coercion for irradiance CSV rows.
"""

from __future__ import annotations

import math
from typing import Any, Sequence

from app.domain.irradiance import IssueSeverity, RowIssue
from app.mappers.header_mapper import HeaderResolution
from db.models.irradiance_point import MONTH_KEYS

NULL_TOKENS = frozenset({"", "-", "n/a", "na", "nan", "null"})


class InvalidNumber(ValueError):
    """Raised when a non-null cell cannot be read as a finite number."""


def parse_number(raw: Any) -> float | None:
    """
    Coerce a cell to float. Comma or dot decimal separators are accepted;
    null tokens map to None.
    """

    if raw is None:
        return None
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        value = float(raw)
    else:
        text = str(raw).strip()
        if text.lower() in NULL_TOKENS:
            return None
        try:
            value = float(text.replace(",", "."))
        except ValueError as exc:
            raise InvalidNumber(text) from exc
    if not math.isfinite(value):
        raise InvalidNumber(str(raw))
    return value


class PointRowValidator:
    """
    Validates one data row against a resolved header.

    Returns ``(row, issues)``; ``row`` is None when the row must be dropped.
    """

    def validate_row(
        self,
        *,
        cells: Sequence[str],
        header: HeaderResolution,
        line: int,
        file_name: str,
    ) -> tuple[dict[str, Any] | None, list[RowIssue]]:
        issues: list[RowIssue] = []

        if len(cells) < header.width:
            issues.append(
                RowIssue(
                    file_name=file_name,
                    line=line,
                    severity=IssueSeverity.WARNING,
                    message=f"Row has {len(cells)} columns, header needs {header.width}.",
                )
            )

        lat = self._parse_coordinate(
            cells, header.lat_index, column="lat", bound=90.0, line=line, file_name=file_name, issues=issues
        )
        lon = self._parse_coordinate(
            cells, header.lon_index, column="lon", bound=180.0, line=line, file_name=file_name, issues=issues
        )
        if lat is None or lon is None:
            return None, issues

        values: list[float | None] = []
        for key, position in zip(MONTH_KEYS, header.month_indices):
            raw = _cell(cells, position)
            try:
                values.append(parse_number(raw))
            except InvalidNumber:
                values.append(None)
                issues.append(
                    RowIssue(
                        file_name=file_name,
                        line=line,
                        severity=IssueSeverity.WARNING,
                        message=f"Unparseable value for {key}; stored as empty.",
                        value=raw,
                    )
                )

        return {"lat": lat, "lon": lon, "values": values}, issues

    @staticmethod
    def _parse_coordinate(
        cells: Sequence[str],
        position: int,
        *,
        column: str,
        bound: float,
        line: int,
        file_name: str,
        issues: list[RowIssue],
    ) -> float | None:
        raw = _cell(cells, position)
        try:
            value = parse_number(raw)
        except InvalidNumber:
            value = None
        if value is None:
            issues.append(
                RowIssue(
                    file_name=file_name,
                    line=line,
                    severity=IssueSeverity.ERROR,
                    message=f"Missing or unparseable {column}; row dropped.",
                    value=raw,
                )
            )
            return None
        if abs(value) > bound:
            issues.append(
                RowIssue(
                    file_name=file_name,
                    line=line,
                    severity=IssueSeverity.ERROR,
                    message=f"{column} out of range [-{bound:g}, {bound:g}]; row dropped.",
                    value=raw,
                )
            )
            return None
        return value


def _cell(cells: Sequence[str], position: int) -> str | None:
    if position >= len(cells):
        return None
    return cells[position]
