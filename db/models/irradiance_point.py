"""
db/models/irradiance_point.py

Monthly irradiance values for one grid point of one dataset version.
Points are written once by batch ingestion and never updated.
"""

from __future__ import annotations

import uuid

from sqlalchemy import BigInteger, Float, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base

MONTH_KEYS: tuple[str, ...] = tuple(f"m{month:02d}" for month in range(1, 13))
PRIMARY_COLUMNS: tuple[str, ...] = MONTH_KEYS
DHI_COLUMNS: tuple[str, ...] = tuple(f"dhi_{key}" for key in MONTH_KEYS)
DNI_COLUMNS: tuple[str, ...] = tuple(f"dni_{key}" for key in MONTH_KEYS)

DEFAULT_POINT_UNIT = "kwh_m2_day"


def _month_value() -> Mapped[float | None]:
    return mapped_column(Float, nullable=True)


class IrradiancePoint(Base):
    __tablename__ = "irradiance_points_monthly"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    version_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("irradiance_dataset_versions.id", ondelete="CASCADE"),
        nullable=False,
    )
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lon: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str] = mapped_column(String(32), nullable=False, default=DEFAULT_POINT_UNIT)

    # Global horizontal (primary quantity)
    m01: Mapped[float | None] = _month_value()
    m02: Mapped[float | None] = _month_value()
    m03: Mapped[float | None] = _month_value()
    m04: Mapped[float | None] = _month_value()
    m05: Mapped[float | None] = _month_value()
    m06: Mapped[float | None] = _month_value()
    m07: Mapped[float | None] = _month_value()
    m08: Mapped[float | None] = _month_value()
    m09: Mapped[float | None] = _month_value()
    m10: Mapped[float | None] = _month_value()
    m11: Mapped[float | None] = _month_value()
    m12: Mapped[float | None] = _month_value()

    # Diffuse horizontal
    dhi_m01: Mapped[float | None] = _month_value()
    dhi_m02: Mapped[float | None] = _month_value()
    dhi_m03: Mapped[float | None] = _month_value()
    dhi_m04: Mapped[float | None] = _month_value()
    dhi_m05: Mapped[float | None] = _month_value()
    dhi_m06: Mapped[float | None] = _month_value()
    dhi_m07: Mapped[float | None] = _month_value()
    dhi_m08: Mapped[float | None] = _month_value()
    dhi_m09: Mapped[float | None] = _month_value()
    dhi_m10: Mapped[float | None] = _month_value()
    dhi_m11: Mapped[float | None] = _month_value()
    dhi_m12: Mapped[float | None] = _month_value()

    # Direct normal
    dni_m01: Mapped[float | None] = _month_value()
    dni_m02: Mapped[float | None] = _month_value()
    dni_m03: Mapped[float | None] = _month_value()
    dni_m04: Mapped[float | None] = _month_value()
    dni_m05: Mapped[float | None] = _month_value()
    dni_m06: Mapped[float | None] = _month_value()
    dni_m07: Mapped[float | None] = _month_value()
    dni_m08: Mapped[float | None] = _month_value()
    dni_m09: Mapped[float | None] = _month_value()
    dni_m10: Mapped[float | None] = _month_value()
    dni_m11: Mapped[float | None] = _month_value()
    dni_m12: Mapped[float | None] = _month_value()

    __table_args__ = (
        Index("ix_irradiance_points_version_id", "version_id"),
        Index("ix_irradiance_points_version_lat_lon", "version_id", "lat", "lon"),
    )

    def series(self, prefix: str = "") -> list[float | None]:
        return [getattr(self, f"{prefix}{key}") for key in MONTH_KEYS]
