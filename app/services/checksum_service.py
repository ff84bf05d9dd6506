"""
app/services/checksum_service.py

Deterministic content hash of a merged row set.

Each row is rendered as ``lat:lon:m01:...:m12`` over the primary monthly
values, rows are joined with ``|`` in the order given, and the result is
hashed with SHA-256. Row order is significant: the same rows in a
different order produce a different checksum.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Mapping
from typing import Any

from db.models.irradiance_point import MONTH_KEYS

ROW_SEPARATOR = "|"
FIELD_SEPARATOR = ":"


def format_number(value: Any) -> str:
    """
    Canonical text for a numeric cell: integral floats lose their
    trailing ``.0``, missing values render as an empty string.
    """

    if value is None:
        return ""
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def canonical_row(row: Mapping[str, Any]) -> str:
    fields = [format_number(row.get("lat")), format_number(row.get("lon"))]
    fields.extend(format_number(row.get(key)) for key in MONTH_KEYS)
    return FIELD_SEPARATOR.join(fields)


def compute_checksum(rows: Iterable[Mapping[str, Any]]) -> str:
    payload = ROW_SEPARATOR.join(canonical_row(row) for row in rows)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
