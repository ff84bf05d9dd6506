"""
db/models/import_job.py

Import job model for asynchronous ingestion tracking, plus its
append-only log stream.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, JSONType, utc_now


class ImportJobStatus:
    QUEUED = "queued"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"

    TERMINAL = frozenset({SUCCESS, FAILED})
    ALL = frozenset({QUEUED, RUNNING, SUCCESS, FAILED})


class ImportJobLogLevel:
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    ALL = frozenset({INFO, WARN, ERROR})


class ImportJob(Base):
    __tablename__ = "irradiance_import_jobs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    dataset_key: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Registry code of the dataset being imported",
    )
    version_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("irradiance_dataset_versions.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=ImportJobStatus.QUEUED,
    )
    row_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    request_payload: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
        comment="Submitted file names, version tag and source note",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    logs: Mapped[list["ImportJobLog"]] = relationship(
        "ImportJobLog",
        back_populates="job",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ImportJobLog.id",
    )

    __table_args__ = (
        Index("ix_irradiance_import_jobs_dataset_key", "dataset_key"),
        Index("ix_irradiance_import_jobs_status", "status"),
        Index("ix_irradiance_import_jobs_created_at", "created_at"),
    )

    @property
    def job_id(self) -> uuid.UUID:
        return self.id


class ImportJobLog(Base):
    __tablename__ = "irradiance_import_job_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("irradiance_import_jobs.id", ondelete="CASCADE"),
        nullable=False,
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
    level: Mapped[str] = mapped_column(String(8), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    job: Mapped[ImportJob] = relationship("ImportJob", back_populates="logs")

    __table_args__ = (Index("ix_irradiance_import_job_logs_job_ts", "job_id", "timestamp"),)
