"""
app/services/batch_ingestion_service.py

Chunked, sequential ingestion of merged rows into a processing version.

Each chunk is one ``batch`` protocol action: it is written and committed
before the next one starts, and the version's running ``row_count`` is
bumped so a mid-ingestion audit sees progress. A failing chunk is retried
with a growing wait; one that keeps failing stops the run and the caller
aborts the version.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Iterator, Sequence
from functools import lru_cache

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import get_ingestion_settings
from app.domain.errors import TransientIngestionError, VersionNotFoundError
from app.domain.irradiance import IngestionProgress, IrradianceRow
from app.domain.version_state import DEFAULT_STATE_MACHINE, VersionAction, VersionStateMachine
from db.repositories.errors import PointPersistenceError
from db.repositories.point_repository import PointRepository
from db.repositories.version_repository import VersionRepository

logger = logging.getLogger(__name__)


class BatchIngestionService:
    def __init__(
        self,
        *,
        batch_size: int,
        chunk_pause_seconds: float = 0.0,
        max_retries: int = 0,
        retry_delay_seconds: float = 1.0,
        state_machine: VersionStateMachine | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._batch_size = max(1, batch_size)
        self._chunk_pause_seconds = max(0.0, chunk_pause_seconds)
        self._max_retries = max(0, max_retries)
        self._retry_delay_seconds = max(0.0, retry_delay_seconds)
        self._state_machine = state_machine or DEFAULT_STATE_MACHINE
        self._sleep = sleep

    def submit_batch(self, *, db: Session, version_id: uuid.UUID, rows: Sequence[IrradianceRow]) -> int:
        """
        Store one chunk of rows for a processing version.

        Returns the number of rows accepted. Raises
        InvalidVersionTransitionError when the version is not processing and
        TransientIngestionError when the write fails.
        """

        versions = VersionRepository(db)
        # Re-read the row; a concurrent purge or finalize may have changed it.
        version = versions.get_for_update(version_id)
        if version is None:
            raise VersionNotFoundError(f"Version not found: {version_id}")
        self._state_machine.next_status(version_id=version_id, status=version.status, action=VersionAction.BATCH)

        try:
            accepted = PointRepository(db).bulk_insert(version_id=version_id, rows=rows)
            versions.increment_row_count(version_id, accepted)
            db.commit()
        except (PointPersistenceError, SQLAlchemyError) as exc:
            db.rollback()
            raise TransientIngestionError(f"Failed to store batch for version {version_id}: {exc}") from exc

        logger.debug("Batch stored version_id=%s accepted=%s", version_id, accepted)
        return accepted

    def ingest(
        self,
        *,
        db: Session,
        version_id: uuid.UUID,
        rows: Sequence[IrradianceRow],
        batch_size: int | None = None,
    ) -> Iterator[IngestionProgress]:
        """
        Submit ``rows`` in order, in chunks, yielding progress after each one.

        A failing chunk is retried up to ``max_retries`` times. When it still
        fails, TransientIngestionError is raised carrying the number of rows
        submitted before it; no further chunks are attempted.
        """

        size = max(1, batch_size or self._batch_size)
        total = len(rows)
        submitted = 0

        for start in range(0, total, size):
            chunk = rows[start : start + size]
            try:
                submitted += self._submit_with_retry(db=db, version_id=version_id, rows=chunk, offset=start)
            except TransientIngestionError as exc:
                logger.error(
                    "Ingestion stopped version_id=%s submitted=%s total=%s error=%s",
                    version_id,
                    submitted,
                    total,
                    exc,
                )
                raise TransientIngestionError(str(exc), submitted=submitted) from exc

            yield IngestionProgress(
                submitted=submitted,
                total=total,
                percent=int(submitted * 100 / total),
            )

            if self._chunk_pause_seconds and start + size < total:
                self._sleep(self._chunk_pause_seconds)

        logger.info("Ingestion completed version_id=%s submitted=%s", version_id, submitted)

    def _submit_with_retry(
        self,
        *,
        db: Session,
        version_id: uuid.UUID,
        rows: Sequence[IrradianceRow],
        offset: int,
    ) -> int:
        attempt = 0
        while True:
            try:
                return self.submit_batch(db=db, version_id=version_id, rows=rows)
            except TransientIngestionError as exc:
                if attempt >= self._max_retries:
                    raise
                delay = (attempt + 1) * self._retry_delay_seconds
                attempt += 1
                logger.warning(
                    "Chunk retry version_id=%s offset=%s attempt=%s/%s delay=%.1fs error=%s",
                    version_id,
                    offset,
                    attempt,
                    self._max_retries,
                    delay,
                    exc,
                )
                if delay:
                    self._sleep(delay)

    def ingest_all(
        self,
        *,
        db: Session,
        version_id: uuid.UUID,
        rows: Sequence[IrradianceRow],
        on_progress: Callable[[IngestionProgress], None] | None = None,
    ) -> int:
        submitted = 0
        for progress in self.ingest(db=db, version_id=version_id, rows=rows):
            submitted = progress.submitted
            if on_progress is not None:
                on_progress(progress)
        return submitted


@lru_cache(maxsize=1)
def get_batch_ingestion_service() -> BatchIngestionService:
    settings = get_ingestion_settings()
    return BatchIngestionService(
        batch_size=settings.batch_size,
        chunk_pause_seconds=settings.chunk_pause_seconds,
        max_retries=settings.chunk_max_retries,
        retry_delay_seconds=settings.chunk_retry_delay_seconds,
    )
