"""
Offline Synchronization

Hands test centers a self-contained package for offline administration and
reconciles the uploaded results back into the central store.

Components:
- Enrollment snapshot reader for (test center, test) pairs
- Package builder advancing enrollments to downloaded
- Package exporter (json, mongoexport, mongoimport)
- Result upload reconciler with per-result failure isolation
- Sync status reporter
- Sync status state machine with audited manual override
"""

from .exceptions import (
    SyncError,
    SyncValidationError,
    UnknownExportFormatError,
    InvalidPackageDataError
)
from .snapshot_reader import EnrollmentSnapshotReader, EnrollmentSnapshot
from .package_builder import PackageBuilder, PackageBuildResult, make_package_id
from .package_exporter import PackageExporter, ExportResult, SUPPORTED_FORMATS
from .result_reconciler import ResultUploadReconciler, PACKAGE_MISMATCH_ERROR
from .status_reporter import SyncStatusReporter
from .state_machine import SyncStatusStateMachine, AUTOMATIC_TRANSITIONS, can_transition
from .sync_service import SyncService, get_sync_service

__all__ = [
    'SyncError',
    'SyncValidationError',
    'UnknownExportFormatError',
    'InvalidPackageDataError',
    'EnrollmentSnapshotReader',
    'EnrollmentSnapshot',
    'PackageBuilder',
    'PackageBuildResult',
    'make_package_id',
    'PackageExporter',
    'ExportResult',
    'SUPPORTED_FORMATS',
    'ResultUploadReconciler',
    'PACKAGE_MISMATCH_ERROR',
    'SyncStatusReporter',
    'SyncStatusStateMachine',
    'AUTOMATIC_TRANSITIONS',
    'can_transition',
    'SyncService',
    'get_sync_service',
]
