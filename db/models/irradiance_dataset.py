"""
db/models/irradiance_dataset.py

Dataset model: one named irradiance source such as an atlas or a satellite grid.
Rows are reference data seeded from the static registry and rarely mutated.
"""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Float, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from db.models.irradiance_dataset_version import IrradianceDatasetVersion


class IrradianceDataset(Base, TimestampMixin):
    """
    A named irradiance dataset. Owns any number of versions; each
    ingestion run of the dataset produces one version.
    """

    __tablename__ = "irradiance_datasets"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    code: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        comment="Stable registry code, e.g. INPE_2017_SUNDATA",
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    provider: Mapped[str] = mapped_column(
        String(120),
        nullable=False,
        comment="Publishing organization: INPE, NASA, NREL",
    )

    resolution_km: Mapped[float | None] = mapped_column(
        Float,
        nullable=True,
        comment="Nominal grid spacing in kilometres",
    )

    default_unit: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="kwh_m2_day",
    )

    # ── Relationships ──────────────────────────────────────────────────────────

    versions: Mapped[list["IrradianceDatasetVersion"]] = relationship(
        "IrradianceDatasetVersion",
        back_populates="dataset",
        passive_deletes=True,
    )

    __table_args__ = (Index("ix_irradiance_datasets_provider", "provider"),)

    def __repr__(self) -> str:
        return f"<IrradianceDataset id={self.id} code={self.code!r}>"
