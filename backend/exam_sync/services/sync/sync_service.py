"""
Sync Service

Single entry point for the offline synchronization subsystem. One instance is
built when the application starts and handed to request handlers through
FastAPI dependency injection.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from exam_sync.models.test_enrollment import SyncStatus
from .package_builder import PackageBuilder, PackageBuildResult
from .package_exporter import ExportResult, PackageExporter
from .result_reconciler import ResultUploadReconciler
from .snapshot_reader import EnrollmentSnapshotReader
from .state_machine import SyncStatusStateMachine
from .status_reporter import SyncStatusReporter

logger = logging.getLogger(__name__)


class SyncService:
    """Offline sync operations for test centers."""

    def __init__(
        self,
        builder: PackageBuilder,
        exporter: PackageExporter,
        reconciler: ResultUploadReconciler,
        reporter: SyncStatusReporter,
        state_machine: SyncStatusStateMachine
    ):
        self.builder = builder
        self.exporter = exporter
        self.reconciler = reconciler
        self.reporter = reporter
        self.state_machine = state_machine

    @classmethod
    def from_settings(cls, settings) -> "SyncService":
        return cls(
            builder=PackageBuilder(
                EnrollmentSnapshotReader(),
                serialize_builds=settings.SYNC_SERIALIZE_PACKAGE_BUILDS
            ),
            exporter=PackageExporter(db_name=settings.SYNC_EXPORT_DB_NAME),
            reconciler=ResultUploadReconciler(),
            reporter=SyncStatusReporter(
                window_days=settings.SYNC_STATUS_WINDOW_DAYS,
                recent_packages_limit=settings.SYNC_RECENT_PACKAGES_LIMIT
            ),
            state_machine=SyncStatusStateMachine()
        )

    async def create_package(self, db: AsyncSession, test_center_id: str, test_id: int) -> PackageBuildResult:
        return await self.builder.create_package(db, test_center_id, test_id)

    def export_package(self, package: Dict[str, Any], format: str = "json") -> ExportResult:
        return self.exporter.export(package, format)

    async def upload_results(
        self,
        db: AsyncSession,
        package_id: str,
        test_center_id: Optional[str],
        results: List[Any]
    ) -> Dict[str, Any]:
        return await self.reconciler.reconcile(db, package_id, test_center_id, results)

    async def get_sync_status(
        self,
        db: AsyncSession,
        test_center_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> Dict[str, Any]:
        return await self.reporter.report(db, test_center_id, start, end)

    async def set_status(
        self,
        db: AsyncSession,
        enrollment_ids: List[int],
        status: SyncStatus,
        changed_by: str,
        reason: Optional[str] = None,
        test_center_id: Optional[str] = None
    ) -> int:
        return await self.state_machine.set_status(
            db, enrollment_ids, status, changed_by,
            reason=reason, test_center_id=test_center_id
        )


def get_sync_service(request: Request) -> SyncService:
    return request.app.state.sync_service
