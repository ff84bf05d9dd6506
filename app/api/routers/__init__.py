"""
app/api/routers package marker.
"""

from app.api.routers.irradiance_datasets import router as irradiance_datasets_router
from app.api.routers.irradiance_imports import router as irradiance_imports_router
from app.api.routers.irradiance_versions import router as irradiance_versions_router

__all__ = [
    "irradiance_datasets_router",
    "irradiance_imports_router",
    "irradiance_versions_router",
]
