"""
app/services/lookup_service.py

Nearest-point lookup of monthly irradiance series in a dataset's active
version, backed by the lookup cache.
"""

from __future__ import annotations

import logging
import math
import uuid
from functools import lru_cache

from sqlalchemy.orm import Session

from app.domain.errors import DatasetNotFoundError, PointNotFoundError, VersionNotFoundError
from app.domain.irradiance import LookupResult
from db.models.irradiance_point import IrradiancePoint
from db.repositories.dataset_repository import DatasetRepository
from db.repositories.errors import CacheWriteError
from db.repositories.lookup_cache_repository import LookupCacheRepository
from db.repositories.point_repository import PointRepository
from db.repositories.version_repository import VersionRepository

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
COORDINATE_DECIMALS = 4
DEFAULT_RADIUS_DEG = 0.5


def round_coordinate(value: float, decimals: int = COORDINATE_DECIMALS) -> float:
    return round(value, decimals)


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(1.0, a)))


class IrradianceLookupService:
    def __init__(self, *, radius_deg: float = DEFAULT_RADIUS_DEG) -> None:
        self._radius_deg = radius_deg

    def lookup(self, *, db: Session, dataset_code: str, lat: float, lon: float) -> LookupResult:
        dataset = DatasetRepository(db).get_by_code(dataset_code)
        if dataset is None:
            raise DatasetNotFoundError(f"Dataset not found: {dataset_code}")
        version = VersionRepository(db).active_for_dataset(dataset.id)
        if version is None:
            raise VersionNotFoundError(f"Dataset {dataset_code} has no active version.")
        version_id = version.id

        lat_round = round_coordinate(lat)
        lon_round = round_coordinate(lon)
        cache = LookupCacheRepository(db)
        cached = cache.get(version_id=version_id, lat_round=lat_round, lon_round=lon_round)
        if cached is not None:
            logger.debug("Lookup cache hit dataset=%s lat=%s lon=%s", dataset_code, lat_round, lon_round)
            return LookupResult(
                dataset_code=dataset_code,
                version_id=version_id,
                lat=lat_round,
                lon=lon_round,
                point_lat=cached.point_lat,
                point_lon=cached.point_lon,
                distance_km=cached.distance_km,
                ghi=list(cached.series.get("ghi") or []),
                dhi=cached.series.get("dhi"),
                dni=cached.series.get("dni"),
                cache_hit=True,
            )

        point, distance_km = self._nearest(db, version_id=version_id, lat=lat_round, lon=lon_round)
        series = {
            "ghi": point.series(),
            "dhi": _optional_series(point, "dhi_"),
            "dni": _optional_series(point, "dni_"),
        }
        point_lat, point_lon = point.lat, point.lon

        try:
            cache.put(
                version_id=version_id,
                lat_round=lat_round,
                lon_round=lon_round,
                series=series,
                point_lat=point_lat,
                point_lon=point_lon,
                distance_km=distance_km,
            )
            db.commit()
        except CacheWriteError as exc:
            logger.warning("Lookup cache write skipped dataset=%s error=%s", dataset_code, exc)

        logger.info(
            "Lookup resolved dataset=%s lat=%s lon=%s distance_km=%.3f",
            dataset_code,
            lat_round,
            lon_round,
            distance_km,
        )
        return LookupResult(
            dataset_code=dataset_code,
            version_id=version_id,
            lat=lat_round,
            lon=lon_round,
            point_lat=point_lat,
            point_lon=point_lon,
            distance_km=distance_km,
            ghi=series["ghi"],
            dhi=series["dhi"],
            dni=series["dni"],
            cache_hit=False,
        )

    def _nearest(self, db: Session, *, version_id: uuid.UUID, lat: float, lon: float) -> tuple[IrradiancePoint, float]:
        candidates = PointRepository(db).nearest_candidates(
            version_id=version_id,
            lat=lat,
            lon=lon,
            radius_deg=self._radius_deg,
        )
        if not candidates:
            raise PointNotFoundError(f"No stored point within {self._radius_deg} degrees of ({lat}, {lon}).")
        scored = [(haversine_km(lat, lon, point.lat, point.lon), point) for point in candidates]
        distance_km, point = min(scored, key=lambda item: item[0])
        return point, round(distance_km, 3)


def _optional_series(point: IrradiancePoint, prefix: str) -> list[float | None] | None:
    values = point.series(prefix)
    return values if any(value is not None for value in values) else None


@lru_cache(maxsize=1)
def get_lookup_service() -> IrradianceLookupService:
    return IrradianceLookupService()
