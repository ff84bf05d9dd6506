"""
app/services/version_lifecycle_service.py

Owns the dataset version lifecycle: creation under the idempotency key,
finalization, abort and deprecation.

Every method commits its own transaction on the session it is given.
"""

from __future__ import annotations

import logging
import uuid
from functools import lru_cache
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.errors import (
    ConflictKind,
    DatasetNotFoundError,
    TransientIngestionError,
    VersionConflictError,
    VersionNotFoundError,
)
from app.domain.irradiance import VersionHandle
from app.domain.version_state import DEFAULT_STATE_MACHINE, VersionAction, VersionStateMachine
from db.base import utc_now
from db.models.irradiance_dataset_version import IrradianceDatasetVersion, VersionStatus
from db.repositories.dataset_repository import DatasetRepository
from db.repositories.lookup_cache_repository import LookupCacheRepository
from db.repositories.version_repository import VersionRepository

logger = logging.getLogger(__name__)


class VersionLifecycleService:
    """
    Drives versions through ``processing -> active | failed`` and
    ``active -> deprecated``.
    """

    def __init__(self, *, state_machine: VersionStateMachine | None = None) -> None:
        self._state_machine = state_machine or DEFAULT_STATE_MACHINE

    def init_version(
        self,
        *,
        db: Session,
        dataset_code: str,
        version_tag: str,
        source_note: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> VersionHandle:
        """
        Open a new ``processing`` version for ``(dataset_code, version_tag)``.

        Raises VersionConflictError when the key is taken: VERSION_PROCESSING
        while the existing version is still processing, VERSION_EXISTS once
        it is terminal. Two racing callers cannot both create a version; the
        unique constraint on the key rejects the loser, who then receives the
        conflict for the winner's version.
        """

        dataset = DatasetRepository(db).get_by_code(dataset_code)
        if dataset is None:
            raise DatasetNotFoundError(f"Dataset not found: {dataset_code}")
        dataset_id = dataset.id

        versions = VersionRepository(db)
        existing = versions.find_by_key(dataset_id=dataset_id, version_tag=version_tag)
        if existing is not None:
            raise self._conflict(existing, dataset_code=dataset_code)

        try:
            version = versions.create(
                dataset_id=dataset_id,
                version_tag=version_tag,
                source_note=source_note,
                metadata=metadata,
            )
            version_id = version.id
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            winner = versions.find_by_key(dataset_id=dataset_id, version_tag=version_tag)
            if winner is None:
                raise TransientIngestionError(
                    f"Failed to create version '{version_tag}' of {dataset_code}."
                ) from exc
            logger.info(
                "Version init lost race dataset=%s tag=%s winner=%s",
                dataset_code,
                version_tag,
                winner.id,
            )
            raise self._conflict(winner, dataset_code=dataset_code) from exc
        except SQLAlchemyError as exc:
            db.rollback()
            raise TransientIngestionError(
                f"Failed to create version '{version_tag}' of {dataset_code}."
            ) from exc

        logger.info("Version opened dataset=%s tag=%s version_id=%s", dataset_code, version_tag, version_id)
        return VersionHandle(version_id=version_id, dataset_id=dataset_id)

    def finalize_version(
        self,
        *,
        db: Session,
        version_id: uuid.UUID,
        row_count: int,
        checksum: str | None,
        metadata: dict[str, Any] | None = None,
    ) -> list[uuid.UUID]:
        """
        Move a processing version to ``active`` and stamp its totals.

        Any other active version of the same dataset is deprecated in the
        same transaction and its lookup cache dropped. Returns the ids of
        the versions that were superseded. ``row_count`` is recorded as
        given; the integrity audit compares it with the stored points.
        """

        versions = VersionRepository(db)
        version = self._require(versions, version_id)
        self._state_machine.next_status(version_id=version_id, status=version.status, action=VersionAction.FINALIZE)

        version.status = VersionStatus.ACTIVE
        version.row_count = row_count
        version.checksum_sha256 = checksum
        version.ingested_at = utc_now()
        version.meta = _merge_metadata(version.meta, metadata)

        superseded: list[uuid.UUID] = []
        for previous in versions.other_active(dataset_id=version.dataset_id, exclude_id=version_id):
            previous.status = self._state_machine.next_status(
                version_id=previous.id,
                status=previous.status,
                action=VersionAction.DEPRECATE,
            )
            previous.meta = _merge_metadata(previous.meta, {"superseded_by": str(version_id)})
            superseded.append(previous.id)

        try:
            LookupCacheRepository(db).delete_for_versions(superseded)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise TransientIngestionError(f"Failed to finalize version {version_id}.") from exc

        logger.info(
            "Version finalized version_id=%s row_count=%s checksum=%s superseded=%s",
            version_id,
            row_count,
            checksum,
            [str(item) for item in superseded],
        )
        return superseded

    def abort_version(self, *, db: Session, version_id: uuid.UUID, error_message: str) -> bool:
        """
        Move a processing version to ``failed`` and record the reason.

        Aborting a version that is already terminal is a no-op and
        returns False.
        """

        versions = VersionRepository(db)
        version = self._require(versions, version_id)
        if self._state_machine.is_noop(version.status, VersionAction.ABORT):
            logger.info("Version abort ignored version_id=%s status=%s", version_id, version.status)
            return False

        version.status = self._state_machine.next_status(
            version_id=version_id,
            status=version.status,
            action=VersionAction.ABORT,
        )
        version.meta = _merge_metadata(version.meta, {"error": error_message})
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise TransientIngestionError(f"Failed to abort version {version_id}.") from exc

        logger.warning("Version aborted version_id=%s error=%s", version_id, error_message)
        return True

    def deprecate_version(self, *, db: Session, version_id: uuid.UUID) -> None:
        versions = VersionRepository(db)
        version = self._require(versions, version_id)
        version.status = self._state_machine.next_status(
            version_id=version_id,
            status=version.status,
            action=VersionAction.DEPRECATE,
        )
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise TransientIngestionError(f"Failed to deprecate version {version_id}.") from exc
        logger.info("Version deprecated version_id=%s", version_id)

    def get_version(self, *, db: Session, version_id: uuid.UUID) -> IrradianceDatasetVersion:
        return self._require(VersionRepository(db), version_id)

    @staticmethod
    def _require(versions: VersionRepository, version_id: uuid.UUID) -> IrradianceDatasetVersion:
        version = versions.get_for_update(version_id)
        if version is None:
            raise VersionNotFoundError(f"Version not found: {version_id}")
        return version

    @staticmethod
    def _conflict(version: IrradianceDatasetVersion, *, dataset_code: str) -> VersionConflictError:
        if version.status == VersionStatus.PROCESSING:
            kind = ConflictKind.VERSION_PROCESSING
        else:
            kind = ConflictKind.VERSION_EXISTS
        return VersionConflictError(
            kind,
            dataset_code=dataset_code,
            version_tag=version.version_tag,
            version_id=version.id,
        )


def _merge_metadata(current: dict[str, Any] | None, extra: dict[str, Any] | None) -> dict[str, Any]:
    merged = dict(current or {})
    if extra:
        merged.update(extra)
    return merged


@lru_cache(maxsize=1)
def get_version_lifecycle_service() -> VersionLifecycleService:
    return VersionLifecycleService()
