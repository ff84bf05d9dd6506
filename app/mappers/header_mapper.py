"""
app/mappers/header_mapper.py

Header resolution for irradiance CSV files: delimiter and component
detection, and location of the lat/lon and twelve month columns.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import Sequence

from app.domain.errors import CSVValidationError
from app.domain.irradiance import Component

# Candidate delimiters in tie-break order.
DELIMITERS: tuple[str, ...] = ("\t", ";", ",")

LAT_ALIASES = frozenset({"lat", "latitude"})
LON_ALIASES = frozenset({"lon", "lng", "long", "longitude"})

_DIFFUSE_MARKERS: tuple[str, ...] = ("diffuse", "dhi", "difusa", "difusa_horizontal")
_DIRECT_NORMAL_MARKERS: tuple[str, ...] = ("direct_normal", "direct-normal", "dni", "direta", "normal_direta")

_MONTH_NAMES: tuple[tuple[str, ...], ...] = (
    ("jan", "january", "janeiro"),
    ("feb", "fev", "february", "fevereiro"),
    ("mar", "march", "marco"),
    ("apr", "abr", "april", "abril"),
    ("may", "mai", "maio"),
    ("jun", "june", "junho"),
    ("jul", "july", "julho"),
    ("aug", "ago", "august", "agosto"),
    ("sep", "sept", "set", "september", "setembro"),
    ("oct", "out", "october", "outubro"),
    ("nov", "november", "novembro"),
    ("dec", "dez", "december", "dezembro"),
)


def _build_month_aliases() -> dict[str, int]:
    aliases: dict[str, int] = {}
    for index, names in enumerate(_MONTH_NAMES):
        for name in names:
            aliases[name] = index
        aliases[f"m{index + 1:02d}"] = index
        aliases[f"m{index + 1}"] = index
    return aliases


MONTH_ALIASES: dict[str, int] = _build_month_aliases()

_COMPONENT_PREFIX = re.compile(r"^(?:ghi|dhi|dni)[_\- ]+")


def detect_delimiter(header_line: str) -> str:
    """
    Pick the most frequent of tab, ``;`` and ``,`` on the header line.
    Ties go to tab, then ``;``. A line with none of them is comma-delimited.
    """

    best = ","
    best_count = 0
    for delimiter in DELIMITERS:
        count = header_line.count(delimiter)
        if count > best_count:
            best = delimiter
            best_count = count
    return best


def detect_component(file_name: str) -> str:
    """
    Classify a file as primary, diffuse or direct-normal from its name.
    """

    lowered = (file_name or "").lower()
    if any(marker in lowered for marker in _DIRECT_NORMAL_MARKERS):
        return Component.DIRECT_NORMAL
    if any(marker in lowered for marker in _DIFFUSE_MARKERS):
        return Component.DIFFUSE
    return Component.PRIMARY


def normalize_header_token(token: str) -> str:
    """
    Lower-case, strip quotes and whitespace, and drop accents
    (``março`` -> ``marco``).
    """

    cleaned = token.replace("\ufeff", "").replace('"', "").replace("'", "").strip().lower()
    decomposed = unicodedata.normalize("NFKD", cleaned)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def month_index(token: str) -> int | None:
    """
    Zero-based month for a normalized header token, tolerating a
    ``ghi_``/``dhi_``/``dni_`` prefix.
    """

    if token in MONTH_ALIASES:
        return MONTH_ALIASES[token]
    stripped = _COMPONENT_PREFIX.sub("", token)
    return MONTH_ALIASES.get(stripped)


@dataclass(frozen=True)
class HeaderResolution:
    """
    Column positions resolved from one file header.
    """

    headers: tuple[str, ...]
    lat_index: int
    lon_index: int
    month_indices: tuple[int, ...]
    ignored: tuple[str, ...]

    @property
    def width(self) -> int:
        return max((self.lat_index, self.lon_index, *self.month_indices)) + 1


class HeaderMapper:
    """
    Resolves a raw header row into lat/lon and month column positions.
    """

    def resolve(self, headers: Sequence[str], *, file_name: str) -> HeaderResolution:
        normalized = tuple(normalize_header_token(header) for header in headers)
        if not any(normalized):
            raise CSVValidationError(f"{file_name}: header row is missing.", file_name=file_name)

        lat_index = self._find(normalized, LAT_ALIASES)
        lon_index = self._find(normalized, LON_ALIASES)
        if lat_index is None or lon_index is None:
            raise CSVValidationError(
                f"{file_name}: lat/lon columns not found. Headers: {', '.join(normalized)}",
                file_name=file_name,
            )

        months: dict[int, int] = {}
        ignored: list[str] = []
        for position, token in enumerate(normalized):
            if position in (lat_index, lon_index):
                continue
            month = month_index(token)
            if month is None or month in months:
                ignored.append(token)
                continue
            months[month] = position

        if len(months) != 12:
            missing = [f"m{month + 1:02d}" for month in range(12) if month not in months]
            raise CSVValidationError(
                f"{file_name}: expected 12 month columns, found {len(months)} "
                f"(missing {', '.join(missing)}). Headers: {', '.join(normalized)}",
                file_name=file_name,
            )

        return HeaderResolution(
            headers=normalized,
            lat_index=lat_index,
            lon_index=lon_index,
            month_indices=tuple(months[month] for month in range(12)),
            ignored=tuple(ignored),
        )

    @staticmethod
    def _find(tokens: Sequence[str], aliases: frozenset[str]) -> int | None:
        for position, token in enumerate(tokens):
            if token in aliases:
                return position
        return None
