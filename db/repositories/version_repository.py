"""
db/repositories/version_repository.py

Persistence for dataset versions.

The caller controls commit/rollback; this repository only flushes.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from db.models.irradiance_dataset_version import IrradianceDatasetVersion, VersionStatus


class VersionRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, version_id: uuid.UUID) -> IrradianceDatasetVersion | None:
        return self._session.get(IrradianceDatasetVersion, version_id)

    def get_for_update(self, version_id: uuid.UUID) -> IrradianceDatasetVersion | None:
        stmt = (
            select(IrradianceDatasetVersion)
            .where(IrradianceDatasetVersion.id == version_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self._session.scalars(stmt).first()

    def find_by_key(self, *, dataset_id: uuid.UUID, version_tag: str) -> IrradianceDatasetVersion | None:
        stmt = select(IrradianceDatasetVersion).where(
            IrradianceDatasetVersion.dataset_id == dataset_id,
            IrradianceDatasetVersion.version_tag == version_tag,
        )
        return self._session.scalars(stmt).first()

    def create(
        self,
        *,
        dataset_id: uuid.UUID,
        version_tag: str,
        source_note: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> IrradianceDatasetVersion:
        version = IrradianceDatasetVersion(
            dataset_id=dataset_id,
            version_tag=version_tag,
            status=VersionStatus.PROCESSING,
            row_count=0,
            source_note=source_note,
            meta=dict(metadata) if metadata else {},
        )
        self._session.add(version)
        self._session.flush()
        return version

    def list_for_dataset(
        self,
        dataset_id: uuid.UUID,
        *,
        status: str | None = None,
    ) -> list[IrradianceDatasetVersion]:
        stmt = select(IrradianceDatasetVersion).where(IrradianceDatasetVersion.dataset_id == dataset_id)
        if status:
            stmt = stmt.where(IrradianceDatasetVersion.status == status)
        stmt = stmt.order_by(IrradianceDatasetVersion.created_at.desc())
        return list(self._session.scalars(stmt).all())

    def ids_for_dataset(self, dataset_id: uuid.UUID) -> list[uuid.UUID]:
        stmt = select(IrradianceDatasetVersion.id).where(IrradianceDatasetVersion.dataset_id == dataset_id)
        return list(self._session.scalars(stmt).all())

    def active_for_dataset(self, dataset_id: uuid.UUID) -> IrradianceDatasetVersion | None:
        stmt = (
            select(IrradianceDatasetVersion)
            .where(
                IrradianceDatasetVersion.dataset_id == dataset_id,
                IrradianceDatasetVersion.status == VersionStatus.ACTIVE,
            )
            .order_by(IrradianceDatasetVersion.ingested_at.desc())
        )
        return self._session.scalars(stmt).first()

    def count_active(self, dataset_id: uuid.UUID) -> int:
        stmt = select(func.count(IrradianceDatasetVersion.id)).where(
            IrradianceDatasetVersion.dataset_id == dataset_id,
            IrradianceDatasetVersion.status == VersionStatus.ACTIVE,
        )
        return int(self._session.scalar(stmt) or 0)

    def other_active(self, *, dataset_id: uuid.UUID, exclude_id: uuid.UUID) -> list[IrradianceDatasetVersion]:
        stmt = select(IrradianceDatasetVersion).where(
            IrradianceDatasetVersion.dataset_id == dataset_id,
            IrradianceDatasetVersion.status == VersionStatus.ACTIVE,
            IrradianceDatasetVersion.id != exclude_id,
        )
        return list(self._session.scalars(stmt).all())

    def increment_row_count(self, version_id: uuid.UUID, amount: int) -> None:
        stmt = (
            update(IrradianceDatasetVersion)
            .where(IrradianceDatasetVersion.id == version_id)
            .values(row_count=IrradianceDatasetVersion.row_count + amount)
        )
        self._session.execute(stmt)

    def list_stuck(self, *, older_than: datetime) -> list[IrradianceDatasetVersion]:
        stmt = select(IrradianceDatasetVersion).where(
            IrradianceDatasetVersion.status == VersionStatus.PROCESSING,
            IrradianceDatasetVersion.created_at < older_than,
        )
        return list(self._session.scalars(stmt).all())

    def delete_for_dataset(self, dataset_id: uuid.UUID) -> int:
        stmt = delete(IrradianceDatasetVersion).where(IrradianceDatasetVersion.dataset_id == dataset_id)
        result = self._session.execute(stmt)
        return int(result.rowcount or 0)
