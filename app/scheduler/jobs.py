"""
app/scheduler/jobs.py

APScheduler-based maintenance scheduler for the irradiance store.

Jobs
----
  cleanup_stuck_versions  aborts ``processing`` versions whose ingestion
                          stopped without finalizing or aborting (worker
                          crash, lost client).
  prune_import_jobs       deletes finished import jobs and their logs after
                          the retention window.

Both run every ``MAINTENANCE_INTERVAL_MINUTES``.

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
Start it on app boot; shut it down gracefully on app shutdown.
The scheduler is wired into FastAPI via the ``lifespan`` context in main.py.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Iterator

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from app.config import MaintenanceSettings, get_maintenance_settings
from app.domain.errors import IrradianceIngestionError
from app.services.version_lifecycle_service import get_version_lifecycle_service
from db.repositories.import_job_repository import ImportJobRepository
from db.repositories.version_repository import VersionRepository
from db.session import SessionLocal

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]

STUCK_VERSION_MESSAGE = "Ingestion stalled; aborted by maintenance."


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------


@contextmanager
def _session_scope(session_factory: SessionFactory | None = None) -> Iterator[Session]:
    """Yield a fresh session and ensure it is closed on exit."""
    session: Session = (session_factory or SessionLocal)()
    try:
        yield session
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Job: stuck version cleanup
# ---------------------------------------------------------------------------


def cleanup_stuck_versions(
    *,
    session_factory: SessionFactory | None = None,
    settings: MaintenanceSettings | None = None,
    now: datetime | None = None,
) -> int:
    """
    Abort versions still ``processing`` after ``stuck_version_hours``.

    Each version is aborted in its own transaction; one failure does not
    stop the rest. Returns the number of versions aborted.
    """
    settings = settings or get_maintenance_settings()
    now = now or datetime.now(tz=timezone.utc)
    cutoff = now - timedelta(hours=settings.stuck_version_hours)
    lifecycle = get_version_lifecycle_service()
    logger.info("Scheduler: cleanup_stuck_versions starting cutoff=%s", cutoff.isoformat())

    aborted = 0
    with _session_scope(session_factory) as db:
        stuck_ids = [version.id for version in VersionRepository(db).list_stuck(older_than=cutoff)]
        for version_id in stuck_ids:
            try:
                if lifecycle.abort_version(db=db, version_id=version_id, error_message=STUCK_VERSION_MESSAGE):
                    aborted += 1
            except IrradianceIngestionError as exc:
                db.rollback()
                logger.warning("Scheduler: cleanup_stuck_versions failed version_id=%s: %s", version_id, exc)

    logger.info("Scheduler: cleanup_stuck_versions complete aborted=%s", aborted)
    return aborted


# ---------------------------------------------------------------------------
# Job: import job retention
# ---------------------------------------------------------------------------


def prune_import_jobs(
    *,
    session_factory: SessionFactory | None = None,
    settings: MaintenanceSettings | None = None,
    now: datetime | None = None,
) -> int:
    """Delete finished import jobs older than ``job_retention_days``."""
    settings = settings or get_maintenance_settings()
    now = now or datetime.now(tz=timezone.utc)
    cutoff = now - timedelta(days=settings.job_retention_days)

    with _session_scope(session_factory) as db:
        try:
            deleted = ImportJobRepository(db).delete_finished_before(cutoff)
            db.commit()
        except Exception as exc:  # noqa: BLE001
            db.rollback()
            logger.warning("Scheduler: prune_import_jobs failed: %s", exc)
            return 0

    logger.info("Scheduler: prune_import_jobs complete deleted=%s cutoff=%s", deleted, cutoff.isoformat())
    return deleted


# ---------------------------------------------------------------------------
# Scheduler factory
# ---------------------------------------------------------------------------


def build_scheduler(settings: MaintenanceSettings | None = None) -> BackgroundScheduler:
    """
    Build and register the maintenance jobs.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    The caller must call ``.start()`` and ``.shutdown(wait=True)`` at the
    appropriate lifecycle points.
    """
    settings = settings or get_maintenance_settings()
    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler.add_job(
        cleanup_stuck_versions,
        trigger="interval",
        minutes=settings.interval_minutes,
        id="cleanup_stuck_versions",
        name="Abort stalled ingestion versions",
        replace_existing=True,
        misfire_grace_time=600,
        coalesce=True,
    )
    scheduler.add_job(
        prune_import_jobs,
        trigger="interval",
        minutes=settings.interval_minutes,
        id="prune_import_jobs",
        name="Prune finished import jobs",
        replace_existing=True,
        misfire_grace_time=600,
        coalesce=True,
    )

    return scheduler
