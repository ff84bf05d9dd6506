"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.import_job import ImportJob, ImportJobLog, ImportJobLogLevel, ImportJobStatus
from db.models.irradiance_dataset import IrradianceDataset
from db.models.irradiance_dataset_version import IrradianceDatasetVersion, VersionStatus
from db.models.irradiance_point import IrradiancePoint
from db.models.lookup_cache import IrradianceLookupCache

__all__ = [
    "ImportJob",
    "ImportJobLog",
    "ImportJobLogLevel",
    "ImportJobStatus",
    "IrradianceDataset",
    "IrradianceDatasetVersion",
    "IrradianceLookupCache",
    "IrradiancePoint",
    "VersionStatus",
]
