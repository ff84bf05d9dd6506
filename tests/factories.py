"""
tests/factories.py

Builders for merged rows and CSV text used across the test modules.
"""

from __future__ import annotations

from typing import Any

from db.models.irradiance_point import DHI_COLUMNS, MONTH_KEYS


def make_row(lat: float, lon: float, base: float = 5.0, *, dhi: float | None = None) -> dict[str, Any]:
    row: dict[str, Any] = {"lat": lat, "lon": lon}
    for index, key in enumerate(MONTH_KEYS):
        row[key] = round(base + index * 0.1, 3)
    if dhi is not None:
        for index, key in enumerate(DHI_COLUMNS):
            row[key] = round(dhi + index * 0.05, 3)
    return row


def make_grid(count: int, *, lat0: float = -20.0, lon0: float = -45.0) -> list[dict[str, Any]]:
    return [make_row(lat0 + (index // 50) * 0.1, lon0 + (index % 50) * 0.1) for index in range(count)]


def month_header(delimiter: str = ";", names: tuple[str, ...] | None = None) -> str:
    months = names or ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec")
    return delimiter.join(("lat", "lon", *months))


def csv_line(lat: float, lon: float, values: list[Any], delimiter: str = ";") -> str:
    return delimiter.join(str(item) for item in (lat, lon, *values))
