"""
Repository-layer exceptions for irradiance persistence flows.
"""

from __future__ import annotations


class RepositoryError(Exception):
    """Base exception for irradiance repository failures."""


class PointPersistenceError(RepositoryError):
    """Raised when a chunk of data points cannot be written."""


class CacheWriteError(RepositoryError):
    """Raised when a lookup cache entry cannot be stored."""
