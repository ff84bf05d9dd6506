"""
tests/test_import_job_service.py
"""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy.orm import Session

from app.domain.errors import ImportJobNotFoundError
from app.services.import_job_service import ImportJobTracker
from db.models.import_job import ImportJobLogLevel, ImportJobStatus


@pytest.fixture()
def tracker(db: Session) -> ImportJobTracker:
    return ImportJobTracker(db)


def test_new_job_is_queued(tracker: ImportJobTracker) -> None:
    job = tracker.create_job(dataset_key="INPE_2017_SUNDATA", request_payload={"files": []})

    assert job.status == ImportJobStatus.QUEUED
    assert job.started_at is None
    assert job.finished_at is None
    assert tracker.get_status(job.id).request_payload == {"files": []}


def test_status_stamps(tracker: ImportJobTracker) -> None:
    job = tracker.create_job(dataset_key="INPE_2017_SUNDATA")

    running = tracker.set_status(job.id, ImportJobStatus.RUNNING)
    assert running.started_at is not None
    assert running.finished_at is None

    done = tracker.set_status(job.id, ImportJobStatus.SUCCESS, row_count=42)
    assert done.finished_at is not None
    assert done.row_count == 42


def test_failure_keeps_error_message(tracker: ImportJobTracker) -> None:
    job = tracker.create_job(dataset_key="INPE_2017_SUNDATA")

    failed = tracker.set_status(job.id, ImportJobStatus.FAILED, error_message="network timeout")

    assert failed.error_message == "network timeout"
    assert failed.finished_at is not None


def test_logs_come_back_in_append_order(tracker: ImportJobTracker) -> None:
    job = tracker.create_job(dataset_key="INPE_2017_SUNDATA")
    tracker.append_log(job.id, ImportJobLogLevel.INFO, "first")
    tracker.append_log(job.id, ImportJobLogLevel.WARN, "second")
    tracker.append_log(job.id, ImportJobLogLevel.ERROR, "third")

    logs = tracker.get_logs(job.id)

    assert [entry.message for entry in logs] == ["first", "second", "third"]
    assert [entry.level for entry in logs] == ["info", "warn", "error"]


def test_rejects_unknown_level_and_status(tracker: ImportJobTracker) -> None:
    job = tracker.create_job(dataset_key="INPE_2017_SUNDATA")

    with pytest.raises(ValueError):
        tracker.append_log(job.id, "debug", "nope")
    with pytest.raises(ValueError):
        tracker.set_status(job.id, "paused")


def test_unknown_job(tracker: ImportJobTracker) -> None:
    missing = uuid.uuid4()

    with pytest.raises(ImportJobNotFoundError):
        tracker.get_status(missing)
    with pytest.raises(ImportJobNotFoundError):
        tracker.get_logs(missing)
    with pytest.raises(ImportJobNotFoundError):
        tracker.set_status(missing, ImportJobStatus.RUNNING)


def test_list_jobs_filters(tracker: ImportJobTracker) -> None:
    first = tracker.create_job(dataset_key="INPE_2017_SUNDATA")
    tracker.create_job(dataset_key="NASA_POWER_GLOBAL")
    tracker.set_status(first.id, ImportJobStatus.FAILED, error_message="bad")

    assert [job.id for job in tracker.list_jobs(dataset_key="INPE_2017_SUNDATA")] == [first.id]
    assert [job.id for job in tracker.list_jobs(status=ImportJobStatus.FAILED)] == [first.id]
    assert len(tracker.list_jobs()) == 2


def test_status_change_is_visible_to_later_queries(tracker: ImportJobTracker) -> None:
    job = tracker.create_job(dataset_key="INPE_2017_SUNDATA")
    tracker.set_status(job.id, ImportJobStatus.RUNNING)

    assert [row.id for row in tracker.list_jobs(status=ImportJobStatus.RUNNING)] == [job.id]
    assert tracker.list_jobs(status=ImportJobStatus.QUEUED) == []
