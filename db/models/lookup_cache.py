"""
db/models/lookup_cache.py

Derived cache of resolved monthly series, keyed by version and rounded
coordinate. Entries reference immutable version data, so they are only
removed when the owning version is purged or superseded.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Float, ForeignKey, Integer, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONType, utc_now


class IrradianceLookupCache(Base):
    __tablename__ = "irradiance_lookup_cache"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    version_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("irradiance_dataset_versions.id", ondelete="CASCADE"),
        nullable=False,
    )
    lat_round: Mapped[float] = mapped_column(Float, nullable=False)
    lon_round: Mapped[float] = mapped_column(Float, nullable=False)
    series: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        comment='{"ghi": [...12], "dhi": [...12] | null, "dni": [...12] | null}',
    )
    point_lat: Mapped[float] = mapped_column(Float, nullable=False)
    point_lon: Mapped[float] = mapped_column(Float, nullable=False)
    distance_km: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    __table_args__ = (
        UniqueConstraint(
            "version_id",
            "lat_round",
            "lon_round",
            name="uq_irradiance_lookup_cache_version_coord",
        ),
    )
