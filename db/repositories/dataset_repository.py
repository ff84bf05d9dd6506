"""
Dataset repository responsible for catalog lookups and registry sync.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.irradiance_dataset import IrradianceDataset


class DatasetRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, dataset_id: uuid.UUID) -> IrradianceDataset | None:
        return self._session.get(IrradianceDataset, dataset_id)

    def get_by_code(self, code: str) -> IrradianceDataset | None:
        stmt = select(IrradianceDataset).where(IrradianceDataset.code == code)
        return self._session.scalars(stmt).first()

    def list_datasets(self) -> list[IrradianceDataset]:
        stmt = select(IrradianceDataset).order_by(IrradianceDataset.code)
        return list(self._session.scalars(stmt).all())

    def upsert(
        self,
        *,
        code: str,
        name: str,
        provider: str,
        resolution_km: float | None,
        default_unit: str,
    ) -> tuple[IrradianceDataset, bool]:
        """
        Create the dataset row for ``code`` or refresh its descriptive fields.

        Returns the row and whether it was newly created.
        """

        dataset = self.get_by_code(code)
        created = dataset is None
        if dataset is None:
            dataset = IrradianceDataset(code=code)
            self._session.add(dataset)
        dataset.name = name
        dataset.provider = provider
        dataset.resolution_km = resolution_km
        dataset.default_unit = default_unit
        self._session.flush()
        return dataset, created

    def codes(self, dataset_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, str]:
        ids = list(dataset_ids)
        if not ids:
            return {}
        stmt = select(IrradianceDataset.id, IrradianceDataset.code).where(IrradianceDataset.id.in_(ids))
        return {row.id: row.code for row in self._session.execute(stmt)}
