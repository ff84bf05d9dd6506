"""
app/services/purge_service.py

Cascading teardown of a dataset's versions, points, cache entries and
import jobs. The dataset catalog row itself is kept.

By default every step commits on its own: a failing step is rolled back,
recorded in the report and the remaining steps still run. With
``atomic=True`` the whole cascade is one transaction and any failure
leaves everything in place.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from functools import lru_cache

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.errors import DatasetNotFoundError, PurgeStepError
from app.domain.irradiance import PurgeReport
from db.repositories.dataset_repository import DatasetRepository
from db.repositories.import_job_repository import ImportJobRepository
from db.repositories.lookup_cache_repository import LookupCacheRepository
from db.repositories.point_repository import PointRepository
from db.repositories.version_repository import VersionRepository

logger = logging.getLogger(__name__)


class PurgeService:
    def purge(self, *, db: Session, dataset_id: uuid.UUID, atomic: bool = False) -> PurgeReport:
        """
        Delete everything ingested for ``dataset_id``.

        Safe to repeat: purging an already-purged dataset deletes nothing
        and reports no errors.
        """

        dataset = DatasetRepository(db).get(dataset_id)
        if dataset is None:
            raise DatasetNotFoundError(f"Dataset not found: {dataset_id}")
        dataset_code = dataset.code

        version_ids = VersionRepository(db).ids_for_dataset(dataset_id)
        report = PurgeReport(dataset_id=dataset_id, versions=list(version_ids))
        logger.info("Purge started dataset=%s versions=%s atomic=%s", dataset_code, len(version_ids), atomic)

        if atomic:
            self._purge_atomic(db, report, dataset_code=dataset_code)
        else:
            self._purge_best_effort(db, report, dataset_code=dataset_code)

        logger.info(
            "Purge finished dataset=%s points=%s cache=%s jobs=%s versions=%s errors=%s",
            dataset_code,
            report.points_deleted,
            report.cache_deleted,
            report.jobs_deleted,
            report.versions_deleted,
            len(report.errors),
        )
        return report

    def _purge_best_effort(self, db: Session, report: PurgeReport, *, dataset_code: str) -> None:
        points = PointRepository(db)
        cache = LookupCacheRepository(db)

        for version_id in report.versions:
            report.points_deleted += self._run_step(
                db, report, "delete_points", f"version {version_id}", points.delete_for_version, version_id
            )
            report.cache_deleted += self._run_step(
                db, report, "delete_cache", f"version {version_id}", cache.delete_for_version, version_id
            )

        report.jobs_deleted += self._run_step(
            db,
            report,
            "delete_jobs",
            f"dataset {dataset_code}",
            lambda: ImportJobRepository(db).delete_for_dataset(dataset_key=dataset_code, version_ids=report.versions),
        )
        report.versions_deleted += self._run_step(
            db,
            report,
            "delete_versions",
            f"dataset {dataset_code}",
            VersionRepository(db).delete_for_dataset,
            report.dataset_id,
        )

    def _purge_atomic(self, db: Session, report: PurgeReport, *, dataset_code: str) -> None:
        points = PointRepository(db)
        cache = LookupCacheRepository(db)
        try:
            points_deleted = sum(points.delete_for_version(version_id) for version_id in report.versions)
            cache_deleted = cache.delete_for_versions(report.versions)
            jobs_deleted = ImportJobRepository(db).delete_for_dataset(
                dataset_key=dataset_code,
                version_ids=report.versions,
            )
            versions_deleted = VersionRepository(db).delete_for_dataset(report.dataset_id)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Atomic purge rolled back dataset=%s error=%s", dataset_code, exc)
            report.errors.append(PurgeStepError(step="purge", target=f"dataset {dataset_code}", detail=str(exc)))
            return

        report.points_deleted = points_deleted
        report.cache_deleted = cache_deleted
        report.jobs_deleted = jobs_deleted
        report.versions_deleted = versions_deleted

    @staticmethod
    def _run_step(
        db: Session,
        report: PurgeReport,
        step: str,
        target: str,
        action: Callable[..., int],
        *args: object,
    ) -> int:
        try:
            deleted = action(*args)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            error = PurgeStepError(step=step, target=target, detail=str(exc))
            logger.error("Purge step failed step=%s target=%s error=%s", step, target, exc)
            report.errors.append(error)
            return 0
        logger.info("Purge step done step=%s target=%s deleted=%s", step, target, deleted)
        return deleted


@lru_cache(maxsize=1)
def get_purge_service() -> PurgeService:
    return PurgeService()
