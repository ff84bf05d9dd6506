"""
tests/test_lookup_service.py
"""

from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from app.domain.errors import DatasetNotFoundError, PointNotFoundError, VersionNotFoundError
from app.services.batch_ingestion_service import BatchIngestionService
from app.services.import_job_service import ImportJobTracker
from app.services.lookup_service import IrradianceLookupService, haversine_km, round_coordinate
from app.services.version_lifecycle_service import VersionLifecycleService
from db.repositories.lookup_cache_repository import LookupCacheRepository
from factories import make_row

DATASET = "INPE_2017_SUNDATA"


def _activate(db: Session, rows, tag: str = "v1"):
    lifecycle = VersionLifecycleService()
    handle = lifecycle.init_version(db=db, dataset_code=DATASET, version_tag=tag)
    BatchIngestionService(batch_size=100).ingest_all(db=db, version_id=handle.version_id, rows=rows)
    lifecycle.finalize_version(db=db, version_id=handle.version_id, row_count=len(rows), checksum=None)
    return handle


def test_returns_nearest_point_series(db: Session) -> None:
    handle = _activate(db, [make_row(-20.0, -45.0, 5.0, dhi=2.0), make_row(-20.1, -45.1, 6.0)])
    service = IrradianceLookupService()

    result = service.lookup(db=db, dataset_code=DATASET, lat=-20.02, lon=-45.01)

    assert result.version_id == handle.version_id
    assert (result.point_lat, result.point_lon) == (-20.0, -45.0)
    assert result.ghi[0] == 5.0
    assert len(result.ghi) == 12
    assert result.dhi is not None and result.dhi[0] == 2.0
    assert result.dni is None
    assert result.cache_hit is False
    assert result.distance_km == pytest.approx(haversine_km(-20.02, -45.01, -20.0, -45.0), abs=1e-3)


def test_second_lookup_is_served_from_cache(db: Session) -> None:
    handle = _activate(db, [make_row(-20.0, -45.0)])
    service = IrradianceLookupService()

    first = service.lookup(db=db, dataset_code=DATASET, lat=-20.00001, lon=-45.0)
    second = service.lookup(db=db, dataset_code=DATASET, lat=-20.00001, lon=-45.0)

    assert first.cache_hit is False
    assert second.cache_hit is True
    assert second.ghi == first.ghi
    assert second.distance_km == first.distance_km
    assert LookupCacheRepository(db).count_for_version(handle.version_id) == 1


def test_cache_conflict_keeps_callers_pending_work(db: Session) -> None:
    handle = _activate(db, [make_row(-20.0, -45.0)])
    IrradianceLookupService().lookup(db=db, dataset_code=DATASET, lat=-20.0, lon=-45.0)
    cache = LookupCacheRepository(db)
    winner = cache.get(version_id=handle.version_id, lat_round=-20.0, lon_round=-45.0)

    tracker = ImportJobTracker(db)
    job = tracker.create_job(dataset_key=DATASET)
    stored = cache.put(
        version_id=handle.version_id,
        lat_round=-20.0,
        lon_round=-45.0,
        series={"ghi": [1.0] * 12},
        point_lat=-20.0,
        point_lon=-45.0,
        distance_km=0.0,
    )
    db.commit()

    assert stored.id == winner.id
    assert cache.count_for_version(handle.version_id) == 1
    assert [row.id for row in tracker.list_jobs(dataset_key=DATASET)] == [job.id]


def test_new_active_version_is_not_served_stale_cache(db: Session) -> None:
    _activate(db, [make_row(-20.0, -45.0, 5.0)])
    service = IrradianceLookupService()
    service.lookup(db=db, dataset_code=DATASET, lat=-20.0, lon=-45.0)

    _activate(db, [make_row(-20.0, -45.0, 7.0)], tag="v2")
    result = service.lookup(db=db, dataset_code=DATASET, lat=-20.0, lon=-45.0)

    assert result.cache_hit is False
    assert result.ghi[0] == 7.0


def test_dataset_without_active_version(db: Session) -> None:
    with pytest.raises(VersionNotFoundError):
        IrradianceLookupService().lookup(db=db, dataset_code=DATASET, lat=-20.0, lon=-45.0)


def test_unknown_dataset(db: Session) -> None:
    with pytest.raises(DatasetNotFoundError):
        IrradianceLookupService().lookup(db=db, dataset_code="NOPE", lat=0.0, lon=0.0)


def test_no_point_within_radius(db: Session) -> None:
    _activate(db, [make_row(-20.0, -45.0)])

    with pytest.raises(PointNotFoundError):
        IrradianceLookupService(radius_deg=0.2).lookup(db=db, dataset_code=DATASET, lat=-10.0, lon=-45.0)


def test_helpers() -> None:
    assert round_coordinate(-20.123456) == -20.1235
    assert haversine_km(0.0, 0.0, 0.0, 0.0) == 0.0
    assert haversine_km(0.0, 0.0, 1.0, 0.0) == pytest.approx(111.19, abs=0.01)
