"""
Repository for the derived point-lookup cache.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from db.models.lookup_cache import IrradianceLookupCache
from db.repositories.errors import CacheWriteError


class LookupCacheRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, *, version_id: uuid.UUID, lat_round: float, lon_round: float) -> IrradianceLookupCache | None:
        stmt = select(IrradianceLookupCache).where(
            IrradianceLookupCache.version_id == version_id,
            IrradianceLookupCache.lat_round == lat_round,
            IrradianceLookupCache.lon_round == lon_round,
        )
        return self._session.scalars(stmt).first()

    def put(
        self,
        *,
        version_id: uuid.UUID,
        lat_round: float,
        lon_round: float,
        series: dict[str, Any],
        point_lat: float,
        point_lon: float,
        distance_km: float,
    ) -> IrradianceLookupCache:
        """
        Store a resolved series. A concurrent writer that got there first
        wins; its entry is returned instead. The insert runs in a savepoint
        so a conflict leaves the caller's transaction intact.
        """

        entry = IrradianceLookupCache(
            version_id=version_id,
            lat_round=lat_round,
            lon_round=lon_round,
            series=series,
            point_lat=point_lat,
            point_lon=point_lon,
            distance_km=distance_km,
        )
        try:
            with self._session.begin_nested():
                self._session.add(entry)
        except IntegrityError as exc:
            existing = self.get(version_id=version_id, lat_round=lat_round, lon_round=lon_round)
            if existing is None:
                raise CacheWriteError(f"Failed to cache lookup for version {version_id}.") from exc
            return existing
        return entry

    def count_for_version(self, version_id: uuid.UUID) -> int:
        stmt = select(func.count(IrradianceLookupCache.id)).where(IrradianceLookupCache.version_id == version_id)
        return int(self._session.scalar(stmt) or 0)

    def delete_for_version(self, version_id: uuid.UUID) -> int:
        return self.delete_for_versions([version_id])

    def delete_for_versions(self, version_ids: Sequence[uuid.UUID]) -> int:
        if not version_ids:
            return 0
        stmt = delete(IrradianceLookupCache).where(IrradianceLookupCache.version_id.in_(list(version_ids)))
        result = self._session.execute(stmt)
        return int(result.rowcount or 0)
