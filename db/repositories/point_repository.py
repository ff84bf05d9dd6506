"""
db/repositories/point_repository.py

Write-once storage and read-side aggregates for irradiance data points.

The caller controls commit/rollback; this repository never commits.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models.irradiance_point import (
    DEFAULT_POINT_UNIT,
    DHI_COLUMNS,
    DNI_COLUMNS,
    PRIMARY_COLUMNS,
    IrradiancePoint,
)
from db.repositories.errors import PointPersistenceError

_VALUE_COLUMNS = PRIMARY_COLUMNS + DHI_COLUMNS + DNI_COLUMNS


@dataclass(frozen=True)
class PointExtent:
    count: int
    min_lat: float | None
    max_lat: float | None
    min_lon: float | None
    max_lon: float | None


class PointRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def bulk_insert(
        self,
        *,
        version_id: uuid.UUID,
        rows: Sequence[dict[str, Any]],
        unit: str = DEFAULT_POINT_UNIT,
    ) -> int:
        """
        Insert one chunk of merged rows for ``version_id``.

        Keys outside the point schema are ignored; missing value columns
        are stored as NULL.
        """

        if not rows:
            return 0

        values = [
            {
                "version_id": version_id,
                "lat": row["lat"],
                "lon": row["lon"],
                "unit": unit,
                **{column: row.get(column) for column in _VALUE_COLUMNS},
            }
            for row in rows
        ]
        try:
            self._session.execute(insert(IrradiancePoint), values)
        except SQLAlchemyError as exc:
            raise PointPersistenceError(
                f"Failed to insert {len(values)} points for version {version_id}."
            ) from exc
        return len(values)

    def count_for_version(self, version_id: uuid.UUID) -> int:
        stmt = select(func.count(IrradiancePoint.id)).where(IrradiancePoint.version_id == version_id)
        return int(self._session.scalar(stmt) or 0)

    def count_for_versions(self, version_ids: Sequence[uuid.UUID]) -> int:
        if not version_ids:
            return 0
        stmt = select(func.count(IrradiancePoint.id)).where(IrradiancePoint.version_id.in_(list(version_ids)))
        return int(self._session.scalar(stmt) or 0)

    def extent(self, version_id: uuid.UUID) -> PointExtent:
        stmt = select(
            func.count(IrradiancePoint.id),
            func.min(IrradiancePoint.lat),
            func.max(IrradiancePoint.lat),
            func.min(IrradiancePoint.lon),
            func.max(IrradiancePoint.lon),
        ).where(IrradiancePoint.version_id == version_id)
        count, min_lat, max_lat, min_lon, max_lon = self._session.execute(stmt).one()
        return PointExtent(
            count=int(count or 0),
            min_lat=min_lat,
            max_lat=max_lat,
            min_lon=min_lon,
            max_lon=max_lon,
        )

    def has_component(self, version_id: uuid.UUID, *, prefix: str) -> bool:
        """
        True when any point of the version carries a value for the
        ``prefix`` component (``"dhi_"`` or ``"dni_"``).
        """

        column = getattr(IrradiancePoint, f"{prefix}m01")
        stmt = (
            select(IrradiancePoint.id)
            .where(IrradiancePoint.version_id == version_id, column.is_not(None))
            .limit(1)
        )
        return self._session.scalar(stmt) is not None

    def nearest_candidates(
        self,
        *,
        version_id: uuid.UUID,
        lat: float,
        lon: float,
        radius_deg: float,
    ) -> list[IrradiancePoint]:
        stmt = select(IrradiancePoint).where(
            IrradiancePoint.version_id == version_id,
            IrradiancePoint.lat.between(lat - radius_deg, lat + radius_deg),
            IrradiancePoint.lon.between(lon - radius_deg, lon + radius_deg),
        )
        return list(self._session.scalars(stmt).all())

    def delete_for_version(self, version_id: uuid.UUID) -> int:
        stmt = delete(IrradiancePoint).where(IrradiancePoint.version_id == version_id)
        result = self._session.execute(stmt)
        return int(result.rowcount or 0)
