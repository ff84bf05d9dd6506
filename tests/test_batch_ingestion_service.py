"""
tests/test_batch_ingestion_service.py
"""

from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from app.domain.errors import InvalidVersionTransitionError, TransientIngestionError
from app.services.batch_ingestion_service import BatchIngestionService
from app.services.version_lifecycle_service import VersionLifecycleService
from db.repositories.errors import PointPersistenceError
from db.repositories.point_repository import PointRepository
from db.repositories.version_repository import VersionRepository
from factories import make_grid


def _open_version(db: Session, tag: str = "v1"):
    return VersionLifecycleService().init_version(db=db, dataset_code="INPE_2017_SUNDATA", version_tag=tag)


def test_ingest_reports_progress_per_chunk(db: Session) -> None:
    handle = _open_version(db)
    service = BatchIngestionService(batch_size=4)

    progress = list(service.ingest(db=db, version_id=handle.version_id, rows=make_grid(10)))

    assert [item.submitted for item in progress] == [4, 8, 10]
    assert [item.percent for item in progress] == [40, 80, 100]
    assert all(item.total == 10 for item in progress)
    assert PointRepository(db).count_for_version(handle.version_id) == 10
    assert VersionRepository(db).get(handle.version_id).row_count == 10


def test_batch_size_override(db: Session) -> None:
    handle = _open_version(db)
    service = BatchIngestionService(batch_size=500)

    progress = list(service.ingest(db=db, version_id=handle.version_id, rows=make_grid(6), batch_size=2))

    assert len(progress) == 3


def test_pause_between_chunks_only(db: Session) -> None:
    handle = _open_version(db)
    pauses: list[float] = []
    service = BatchIngestionService(batch_size=3, chunk_pause_seconds=0.25, sleep=pauses.append)

    service.ingest_all(db=db, version_id=handle.version_id, rows=make_grid(9))

    assert pauses == [0.25, 0.25]


def test_ingest_all_forwards_progress(db: Session) -> None:
    handle = _open_version(db)
    seen = []
    service = BatchIngestionService(batch_size=5)

    submitted = service.ingest_all(db=db, version_id=handle.version_id, rows=make_grid(7), on_progress=seen.append)

    assert submitted == 7
    assert [item.percent for item in seen] == [71, 100]


def test_failing_chunk_stops_and_reports_submitted(db: Session, monkeypatch: pytest.MonkeyPatch) -> None:
    handle = _open_version(db)
    service = BatchIngestionService(batch_size=3)
    original = PointRepository.bulk_insert
    calls = {"count": 0}

    def fail_on_second(self: PointRepository, **kwargs):
        calls["count"] += 1
        if calls["count"] == 2:
            raise PointPersistenceError("connection reset")
        return original(self, **kwargs)

    monkeypatch.setattr(PointRepository, "bulk_insert", fail_on_second)

    with pytest.raises(TransientIngestionError) as excinfo:
        service.ingest_all(db=db, version_id=handle.version_id, rows=make_grid(9))

    assert excinfo.value.submitted == 3
    assert calls["count"] == 2
    assert PointRepository(db).count_for_version(handle.version_id) == 3
    assert VersionRepository(db).get(handle.version_id).row_count == 3


def test_chunk_that_fails_once_is_retried(db: Session, monkeypatch: pytest.MonkeyPatch) -> None:
    handle = _open_version(db)
    waits: list[float] = []
    service = BatchIngestionService(batch_size=3, max_retries=3, retry_delay_seconds=1.0, sleep=waits.append)
    original = PointRepository.bulk_insert
    calls = {"count": 0}

    def fail_once_on_second(self: PointRepository, **kwargs):
        calls["count"] += 1
        if calls["count"] == 2:
            raise PointPersistenceError("deadlock detected")
        return original(self, **kwargs)

    monkeypatch.setattr(PointRepository, "bulk_insert", fail_once_on_second)

    submitted = service.ingest_all(db=db, version_id=handle.version_id, rows=make_grid(9))

    assert submitted == 9
    assert calls["count"] == 4
    assert waits == [1.0]
    assert PointRepository(db).count_for_version(handle.version_id) == 9
    assert VersionRepository(db).get(handle.version_id).row_count == 9


def test_chunk_retries_are_bounded(db: Session, monkeypatch: pytest.MonkeyPatch) -> None:
    handle = _open_version(db)
    waits: list[float] = []
    service = BatchIngestionService(batch_size=3, max_retries=2, retry_delay_seconds=0.5, sleep=waits.append)
    calls = {"count": 0}

    def always_fail(self: PointRepository, **kwargs):
        calls["count"] += 1
        raise PointPersistenceError("connection reset")

    monkeypatch.setattr(PointRepository, "bulk_insert", always_fail)

    with pytest.raises(TransientIngestionError) as excinfo:
        service.ingest_all(db=db, version_id=handle.version_id, rows=make_grid(6))

    assert excinfo.value.submitted == 0
    assert calls["count"] == 3
    assert waits == [0.5, 1.0]
    assert PointRepository(db).count_for_version(handle.version_id) == 0


def test_batch_rejected_after_finalize(db: Session) -> None:
    handle = _open_version(db)
    VersionLifecycleService().finalize_version(db=db, version_id=handle.version_id, row_count=0, checksum=None)

    with pytest.raises(InvalidVersionTransitionError):
        BatchIngestionService(batch_size=10).submit_batch(db=db, version_id=handle.version_id, rows=make_grid(1))
