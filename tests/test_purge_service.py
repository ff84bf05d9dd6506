"""
tests/test_purge_service.py
"""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from app.domain.errors import DatasetNotFoundError, VersionNotFoundError
from app.services.batch_ingestion_service import BatchIngestionService
from app.services.import_job_service import ImportJobTracker
from app.services.lookup_service import IrradianceLookupService
from app.services.purge_service import PurgeService
from app.services.version_lifecycle_service import VersionLifecycleService
from db.repositories.dataset_repository import DatasetRepository
from db.repositories.import_job_repository import ImportJobRepository
from db.repositories.lookup_cache_repository import LookupCacheRepository
from db.repositories.point_repository import PointRepository
from db.repositories.version_repository import VersionRepository
from factories import make_grid

DATASET = "INPE_2017_SUNDATA"


def _seed_two_versions(db: Session) -> uuid.UUID:
    lifecycle = VersionLifecycleService()
    ingestion = BatchIngestionService(batch_size=250)
    for tag in ("v1", "v2"):
        handle = lifecycle.init_version(db=db, dataset_code=DATASET, version_tag=tag)
        ingestion.ingest_all(db=db, version_id=handle.version_id, rows=make_grid(500))
        lifecycle.finalize_version(db=db, version_id=handle.version_id, row_count=500, checksum=None)

        tracker = ImportJobTracker(db)
        job = tracker.create_job(dataset_key=DATASET)
        tracker.set_status(job.id, "success", version_id=handle.version_id)
        tracker.append_log(job.id, "info", "done")
        db.commit()

    IrradianceLookupService().lookup(db=db, dataset_code=DATASET, lat=-20.0, lon=-45.0)
    return DatasetRepository(db).get_by_code(DATASET).id


def _assert_empty(db: Session, dataset_id: uuid.UUID, version_ids: list[uuid.UUID]) -> None:
    assert VersionRepository(db).ids_for_dataset(dataset_id) == []
    assert PointRepository(db).count_for_versions(version_ids) == 0
    assert all(LookupCacheRepository(db).count_for_version(version_id) == 0 for version_id in version_ids)
    assert ImportJobRepository(db).list_jobs(dataset_key=DATASET) == []


def test_purge_removes_everything_and_repeats_cleanly(db: Session) -> None:
    dataset_id = _seed_two_versions(db)
    service = PurgeService()

    report = service.purge(db=db, dataset_id=dataset_id)

    assert report.ok
    assert len(report.versions) == 2
    assert report.points_deleted == 1000
    assert report.cache_deleted == 1
    assert report.jobs_deleted == 2
    assert report.versions_deleted == 2
    _assert_empty(db, dataset_id, report.versions)
    assert DatasetRepository(db).get(dataset_id) is not None

    again = service.purge(db=db, dataset_id=dataset_id)

    assert again.ok
    assert again.versions == []
    assert again.points_deleted == 0
    assert again.versions_deleted == 0


def test_atomic_purge(db: Session) -> None:
    dataset_id = _seed_two_versions(db)

    report = PurgeService().purge(db=db, dataset_id=dataset_id, atomic=True)

    assert report.ok
    assert report.points_deleted == 1000
    assert report.versions_deleted == 2
    _assert_empty(db, dataset_id, report.versions)


def test_failed_step_is_recorded_and_the_rest_continue(db: Session, monkeypatch: pytest.MonkeyPatch) -> None:
    dataset_id = _seed_two_versions(db)

    def broken(self: ImportJobRepository, **kwargs):
        raise OperationalError("DELETE", {}, Exception("lock timeout"))

    monkeypatch.setattr(ImportJobRepository, "delete_for_dataset", broken)

    report = PurgeService().purge(db=db, dataset_id=dataset_id)

    assert not report.ok
    assert [error.step for error in report.errors] == ["delete_jobs"]
    assert report.points_deleted == 1000
    assert report.versions_deleted == 2


def test_atomic_failure_leaves_everything(db: Session, monkeypatch: pytest.MonkeyPatch) -> None:
    dataset_id = _seed_two_versions(db)

    def broken(self: VersionRepository, dataset_id):
        raise OperationalError("DELETE", {}, Exception("lock timeout"))

    monkeypatch.setattr(VersionRepository, "delete_for_dataset", broken)

    report = PurgeService().purge(db=db, dataset_id=dataset_id, atomic=True)

    assert [error.step for error in report.errors] == ["purge"]
    assert report.points_deleted == 0
    assert PointRepository(db).count_for_versions(report.versions) == 1000


def test_unknown_dataset(db: Session) -> None:
    with pytest.raises(DatasetNotFoundError):
        PurgeService().purge(db=db, dataset_id=uuid.uuid4())


def test_purge_during_ingestion_stops_later_batches(
    db: Session,
    session_factory: sessionmaker[Session],
) -> None:
    handle = VersionLifecycleService().init_version(db=db, dataset_code=DATASET, version_tag="in-flight")
    ingestion = BatchIngestionService(batch_size=3)
    ingestion.submit_batch(db=db, version_id=handle.version_id, rows=make_grid(3))

    with session_factory() as other:
        report = PurgeService().purge(db=other, dataset_id=handle.dataset_id)

    assert report.ok
    assert report.versions == [handle.version_id]
    assert report.points_deleted == 3

    with pytest.raises(VersionNotFoundError):
        ingestion.submit_batch(db=db, version_id=handle.version_id, rows=make_grid(3))

    assert PointRepository(db).count_for_version(handle.version_id) == 0
    assert VersionRepository(db).ids_for_dataset(handle.dataset_id) == []
