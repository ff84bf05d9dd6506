"""
app/registry.py

Static catalog of irradiance datasets known to the service.

The database ``irradiance_datasets`` table mirrors this catalog; it is
seeded with ``scripts/seed_datasets.py``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.domain.irradiance import CoverageBox
from db.models.irradiance_point import DEFAULT_POINT_UNIT
from db.repositories.dataset_repository import DatasetRepository

logger = logging.getLogger(__name__)

GLOBAL_COVERAGE = CoverageBox(min_lat=-90.0, max_lat=90.0, min_lon=-180.0, max_lon=180.0)


@dataclass(frozen=True)
class DatasetDefinition:
    code: str
    name: str
    provider: str
    source_type: str
    description: str
    resolution_km: float | None = None
    default_unit: str = DEFAULT_POINT_UNIT
    # None means "use the configured service area".
    coverage: CoverageBox | None = None


DATASETS: tuple[DatasetDefinition, ...] = (
    DatasetDefinition(
        code="INPE_2017_SUNDATA",
        name="Atlas Brasileiro 2a Ed. (INPE 2017)",
        provider="INPE",
        source_type="csv",
        description="Official Brazilian solar atlas with GHI, DHI and DNI for the whole territory.",
        resolution_km=10.0,
    ),
    DatasetDefinition(
        code="INPE_2009_10KM",
        name="Atlas Solar Brasil 10km (INPE 2009)",
        provider="INPE",
        source_type="csv",
        description="10 km grid over the Brazilian territory.",
        resolution_km=10.0,
    ),
    DatasetDefinition(
        code="NASA_POWER_GLOBAL",
        name="NASA POWER Global",
        provider="NASA",
        source_type="api",
        description="Global irradiance climatology from the NASA POWER API.",
        resolution_km=55.0,
        coverage=GLOBAL_COVERAGE,
    ),
)

_BY_CODE: dict[str, DatasetDefinition] = {definition.code: definition for definition in DATASETS}


def get_definition(code: str) -> DatasetDefinition | None:
    return _BY_CODE.get(code)


def list_definitions() -> list[DatasetDefinition]:
    return list(DATASETS)


def seed_registry(session: Session) -> list[str]:
    """
    Upsert every catalog entry into ``irradiance_datasets``.

    Flushes but does not commit. Returns the codes that were newly created.
    """

    repository = DatasetRepository(session)
    created_codes: list[str] = []
    for definition in DATASETS:
        _, created = repository.upsert(
            code=definition.code,
            name=definition.name,
            provider=definition.provider,
            resolution_km=definition.resolution_km,
            default_unit=definition.default_unit,
        )
        if created:
            created_codes.append(definition.code)
    logger.info("Dataset registry seeded total=%s created=%s", len(DATASETS), created_codes)
    return created_codes
