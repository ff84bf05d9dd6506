"""
Repository layer exports.
"""

from db.repositories.dataset_repository import DatasetRepository
from db.repositories.errors import CacheWriteError, PointPersistenceError, RepositoryError
from db.repositories.import_job_repository import ImportJobRepository
from db.repositories.lookup_cache_repository import LookupCacheRepository
from db.repositories.point_repository import PointExtent, PointRepository
from db.repositories.version_repository import VersionRepository

__all__ = [
    "DatasetRepository",
    "ImportJobRepository",
    "LookupCacheRepository",
    "PointExtent",
    "PointRepository",
    "VersionRepository",
    "RepositoryError",
    "PointPersistenceError",
    "CacheWriteError",
]
