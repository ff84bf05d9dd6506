"""
tests/test_version_lifecycle_service.py

Version lifecycle: idempotent init under the (dataset, tag) key,
finalize with supersession, abort and deprecate.
"""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.domain.errors import (
    ConflictKind,
    DatasetNotFoundError,
    InvalidVersionTransitionError,
    VersionConflictError,
    VersionNotFoundError,
)
from app.services.version_lifecycle_service import VersionLifecycleService
from db.models.irradiance_dataset_version import IrradianceDatasetVersion, VersionStatus
from db.repositories.lookup_cache_repository import LookupCacheRepository
from db.repositories.version_repository import VersionRepository


@pytest.fixture()
def lifecycle() -> VersionLifecycleService:
    return VersionLifecycleService()


def _version_count(db: Session) -> int:
    return int(db.scalar(select(func.count(IrradianceDatasetVersion.id))) or 0)


class TestInitVersion:
    def test_opens_processing_version(self, db: Session, lifecycle: VersionLifecycleService) -> None:
        handle = lifecycle.init_version(
            db=db,
            dataset_code="INPE_2017_SUNDATA",
            version_tag="v2024.05",
            source_note="atlas reprint",
            metadata={"files": ["ghi.csv"]},
        )

        version = VersionRepository(db).get(handle.version_id)
        assert version is not None
        assert version.status == VersionStatus.PROCESSING
        assert version.row_count == 0
        assert version.dataset_id == handle.dataset_id
        assert version.meta == {"files": ["ghi.csv"]}
        assert version.source_note == "atlas reprint"

    def test_second_init_while_processing_conflicts(self, db: Session, lifecycle: VersionLifecycleService) -> None:
        first = lifecycle.init_version(db=db, dataset_code="NASA_POWER_GLOBAL", version_tag="v2024.05")

        with pytest.raises(VersionConflictError) as excinfo:
            lifecycle.init_version(db=db, dataset_code="NASA_POWER_GLOBAL", version_tag="v2024.05")

        assert excinfo.value.kind is ConflictKind.VERSION_PROCESSING
        assert excinfo.value.version_id == first.version_id
        assert excinfo.value.to_dict()["error"] == "VERSION_PROCESSING"
        assert _version_count(db) == 1

    def test_init_after_terminal_reports_exists(self, db: Session, lifecycle: VersionLifecycleService) -> None:
        handle = lifecycle.init_version(db=db, dataset_code="NASA_POWER_GLOBAL", version_tag="v1")
        lifecycle.abort_version(db=db, version_id=handle.version_id, error_message="boom")

        with pytest.raises(VersionConflictError) as excinfo:
            lifecycle.init_version(db=db, dataset_code="NASA_POWER_GLOBAL", version_tag="v1")

        assert excinfo.value.kind is ConflictKind.VERSION_EXISTS
        assert excinfo.value.to_dict() == {"error": "VERSION_EXISTS", "message": str(excinfo.value)}

    def test_same_tag_on_other_dataset_is_independent(self, db: Session, lifecycle: VersionLifecycleService) -> None:
        lifecycle.init_version(db=db, dataset_code="INPE_2017_SUNDATA", version_tag="v1")
        lifecycle.init_version(db=db, dataset_code="INPE_2009_10KM", version_tag="v1")

        assert _version_count(db) == 2

    def test_unknown_dataset(self, db: Session, lifecycle: VersionLifecycleService) -> None:
        with pytest.raises(DatasetNotFoundError):
            lifecycle.init_version(db=db, dataset_code="NOPE", version_tag="v1")

    def test_racing_insert_returns_winner_conflict(
        self,
        db: Session,
        lifecycle: VersionLifecycleService,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        winner = lifecycle.init_version(db=db, dataset_code="NASA_POWER_GLOBAL", version_tag="race")

        # The pre-check misses the winner, as it would for a caller that
        # read before the other transaction committed.
        original = VersionRepository.find_by_key
        calls = {"count": 0}

        def stale_then_fresh(self: VersionRepository, **kwargs: object) -> IrradianceDatasetVersion | None:
            calls["count"] += 1
            if calls["count"] == 1:
                return None
            return original(self, **kwargs)

        monkeypatch.setattr(VersionRepository, "find_by_key", stale_then_fresh)

        with pytest.raises(VersionConflictError) as excinfo:
            lifecycle.init_version(db=db, dataset_code="NASA_POWER_GLOBAL", version_tag="race")

        assert excinfo.value.kind is ConflictKind.VERSION_PROCESSING
        assert excinfo.value.version_id == winner.version_id
        assert calls["count"] == 2
        assert _version_count(db) == 1


class TestFinalizeVersion:
    def test_finalize_activates_and_stamps_totals(self, db: Session, lifecycle: VersionLifecycleService) -> None:
        handle = lifecycle.init_version(db=db, dataset_code="INPE_2017_SUNDATA", version_tag="v1")

        superseded = lifecycle.finalize_version(
            db=db,
            version_id=handle.version_id,
            row_count=3,
            checksum="a" * 64,
            metadata={"has_dhi": True},
        )

        version = VersionRepository(db).get(handle.version_id)
        assert superseded == []
        assert version.status == VersionStatus.ACTIVE
        assert version.row_count == 3
        assert version.checksum_sha256 == "a" * 64
        assert version.ingested_at is not None
        assert version.meta["has_dhi"] is True

    def test_finalize_deprecates_previous_active_and_drops_its_cache(
        self,
        db: Session,
        lifecycle: VersionLifecycleService,
    ) -> None:
        old = lifecycle.init_version(db=db, dataset_code="INPE_2017_SUNDATA", version_tag="v1")
        lifecycle.finalize_version(db=db, version_id=old.version_id, row_count=0, checksum=None)
        LookupCacheRepository(db).put(
            version_id=old.version_id,
            lat_round=-20.0,
            lon_round=-45.0,
            series={"ghi": [5.0] * 12, "dhi": None, "dni": None},
            point_lat=-20.0,
            point_lon=-45.0,
            distance_km=0.0,
        )
        db.commit()

        new = lifecycle.init_version(db=db, dataset_code="INPE_2017_SUNDATA", version_tag="v2")
        superseded = lifecycle.finalize_version(db=db, version_id=new.version_id, row_count=0, checksum=None)

        versions = VersionRepository(db)
        assert superseded == [old.version_id]
        assert versions.get(old.version_id).status == VersionStatus.DEPRECATED
        assert versions.get(old.version_id).meta["superseded_by"] == str(new.version_id)
        assert versions.count_active(new.dataset_id) == 1
        assert LookupCacheRepository(db).count_for_version(old.version_id) == 0

    def test_finalize_twice_is_rejected(self, db: Session, lifecycle: VersionLifecycleService) -> None:
        handle = lifecycle.init_version(db=db, dataset_code="INPE_2017_SUNDATA", version_tag="v1")
        lifecycle.finalize_version(db=db, version_id=handle.version_id, row_count=0, checksum=None)

        with pytest.raises(InvalidVersionTransitionError):
            lifecycle.finalize_version(db=db, version_id=handle.version_id, row_count=0, checksum=None)

    def test_finalize_unknown_version(self, db: Session, lifecycle: VersionLifecycleService) -> None:
        with pytest.raises(VersionNotFoundError):
            lifecycle.finalize_version(db=db, version_id=uuid.uuid4(), row_count=0, checksum=None)


class TestAbortAndDeprecate:
    def test_abort_records_reason(self, db: Session, lifecycle: VersionLifecycleService) -> None:
        handle = lifecycle.init_version(db=db, dataset_code="INPE_2017_SUNDATA", version_tag="v1")

        assert lifecycle.abort_version(db=db, version_id=handle.version_id, error_message="disk full") is True

        version = VersionRepository(db).get(handle.version_id)
        assert version.status == VersionStatus.FAILED
        assert version.meta["error"] == "disk full"

    def test_abort_on_terminal_version_changes_nothing(self, db: Session, lifecycle: VersionLifecycleService) -> None:
        handle = lifecycle.init_version(db=db, dataset_code="INPE_2017_SUNDATA", version_tag="v1")
        lifecycle.finalize_version(db=db, version_id=handle.version_id, row_count=0, checksum=None)

        assert lifecycle.abort_version(db=db, version_id=handle.version_id, error_message="late") is False
        assert VersionRepository(db).get(handle.version_id).status == VersionStatus.ACTIVE

    def test_deprecate_requires_active(self, db: Session, lifecycle: VersionLifecycleService) -> None:
        handle = lifecycle.init_version(db=db, dataset_code="INPE_2017_SUNDATA", version_tag="v1")

        with pytest.raises(InvalidVersionTransitionError):
            lifecycle.deprecate_version(db=db, version_id=handle.version_id)

        lifecycle.finalize_version(db=db, version_id=handle.version_id, row_count=0, checksum=None)
        lifecycle.deprecate_version(db=db, version_id=handle.version_id)
        assert VersionRepository(db).get(handle.version_id).status == VersionStatus.DEPRECATED
