"""
app/services package marker.
"""

from app.services.batch_ingestion_service import BatchIngestionService, get_batch_ingestion_service
from app.services.checksum_service import compute_checksum
from app.services.csv_merge_service import IrradianceCSVParser, get_csv_parser
from app.services.import_job_service import ImportJobTracker
from app.services.import_orchestrator_service import (
    ImportOrchestratorService,
    get_import_orchestrator_service,
)
from app.services.integrity_audit_service import IntegrityAuditService, get_integrity_audit_service
from app.services.lookup_service import IrradianceLookupService, get_lookup_service
from app.services.purge_service import PurgeService, get_purge_service
from app.services.version_lifecycle_service import VersionLifecycleService, get_version_lifecycle_service

__all__ = [
    "BatchIngestionService",
    "get_batch_ingestion_service",
    "compute_checksum",
    "IrradianceCSVParser",
    "get_csv_parser",
    "ImportJobTracker",
    "ImportOrchestratorService",
    "get_import_orchestrator_service",
    "IntegrityAuditService",
    "get_integrity_audit_service",
    "IrradianceLookupService",
    "get_lookup_service",
    "PurgeService",
    "get_purge_service",
    "VersionLifecycleService",
    "get_version_lifecycle_service",
]
