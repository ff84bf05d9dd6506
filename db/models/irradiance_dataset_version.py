"""
db/models/irradiance_dataset_version.py

Dataset version model: the durable record of one ingestion run.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, JSONType, TimestampMixin

if TYPE_CHECKING:
    from db.models.irradiance_dataset import IrradianceDataset


class VersionStatus:
    """Lifecycle states of a dataset version."""

    PROCESSING = "processing"
    ACTIVE = "active"
    FAILED = "failed"
    DEPRECATED = "deprecated"

    TERMINAL = frozenset({ACTIVE, FAILED, DEPRECATED})
    ALL = frozenset({PROCESSING, ACTIVE, FAILED, DEPRECATED})


class IrradianceDatasetVersion(Base, TimestampMixin):
    """
    One ingestion run of a dataset.

    ``(dataset_id, version_tag)`` is unique: it is the idempotency key
    that keeps two concurrent callers from opening the same version.
    """

    __tablename__ = "irradiance_dataset_versions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    dataset_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("irradiance_datasets.id", ondelete="CASCADE"),
        nullable=False,
    )

    version_tag: Mapped[str] = mapped_column(
        String(120),
        nullable=False,
        comment="Human-meaningful label, e.g. v2024.05",
    )

    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=VersionStatus.PROCESSING,
        comment="processing → active | failed; active → deprecated",
    )

    row_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    checksum_sha256: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    source_note: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    # "metadata" is reserved on declarative classes.
    meta: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata",
        JSONType,
        nullable=True,
        comment="Free-form ingestion metadata: header, delimiter, error, has_dhi",
    )

    ingested_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Stamped when the version is finalized",
    )

    dataset: Mapped["IrradianceDataset"] = relationship(
        "IrradianceDataset",
        back_populates="versions",
    )

    __table_args__ = (
        UniqueConstraint("dataset_id", "version_tag", name="uq_irradiance_versions_dataset_tag"),
        Index("ix_irradiance_versions_dataset_status", "dataset_id", "status"),
        Index("ix_irradiance_versions_status", "status"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in VersionStatus.TERMINAL

    def __repr__(self) -> str:
        return (
            f"<IrradianceDatasetVersion id={self.id} tag={self.version_tag!r} "
            f"status={self.status!r} row_count={self.row_count}>"
        )
