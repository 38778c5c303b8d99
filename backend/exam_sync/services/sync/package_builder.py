"""
Package Builder

Assembles the self-contained download package a test center takes offline:
- the test with its subject and questions
- the registered enrollments of the center for that test
- minimal student records for those enrollments

and advances every packaged enrollment from ``registered`` to ``downloaded``.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from exam_sync.core.metrics import (
    SYNC_ENROLLMENTS_DOWNLOADED,
    SYNC_ENROLLMENTS_SKIPPED,
    SYNC_OPERATION_LATENCY,
    SYNC_PACKAGES_CREATED,
)
from exam_sync.models.test_enrollment import SyncStatus, TestEnrollment
from .snapshot_reader import EnrollmentSnapshotReader
from .state_machine import can_transition

logger = logging.getLogger(__name__)

NO_REGISTRATIONS_MESSAGE = "No valid, complete registrations found for the specified test."


@dataclass
class PackageBuildResult:
    """Outcome of a package request. ``package`` is None for the not-found branch."""
    message: str
    package_id: Optional[str] = None
    package: Optional[Dict[str, Any]] = None
    skipped: int = 0

    @property
    def found(self) -> bool:
        return self.package_id is not None


def make_package_id(test_center_id: str, test_id: int, timestamp_ms: Optional[int] = None) -> str:
    """Time-ordered, human-traceable id: ``{testCenterId}_{testId}_{unixMillis}``."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{test_center_id}_{test_id}_{timestamp_ms}"


class PackageBuilder:
    """Builds download packages and marks their enrollments as downloaded."""

    def __init__(self, reader: EnrollmentSnapshotReader, serialize_builds: bool = True):
        self.reader = reader
        self.serialize_builds = serialize_builds
        self._locks: Dict[Tuple[str, int], asyncio.Lock] = {}
        # Builds holding or waiting on each lock
        self._lock_users: Dict[Tuple[str, int], int] = {}

    @asynccontextmanager
    async def _serialized(self, test_center_id: str, test_id: int):
        key = (test_center_id, test_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    async def create_package(
        self,
        db: AsyncSession,
        test_center_id: str,
        test_id: int
    ) -> PackageBuildResult:
        """Build the package for one test at one test center."""
        with SYNC_OPERATION_LATENCY.labels(operation="create_package").time():
            if not self.serialize_builds:
                return await self._build(db, test_center_id, test_id)

            # Read-then-update must not interleave for the same pair
            async with self._serialized(test_center_id, test_id):
                return await self._build(db, test_center_id, test_id)

    async def _build(
        self,
        db: AsyncSession,
        test_center_id: str,
        test_id: int
    ) -> PackageBuildResult:
        snapshot = await self.reader.read_registered(db, test_center_id, test_id)

        if snapshot.skipped:
            SYNC_ENROLLMENTS_SKIPPED.inc(snapshot.skipped)
            logger.warning(
                f"Skipping {snapshot.skipped} enrollments for test {test_id} at center "
                f"{test_center_id} due to missing student or test references."
            )

        if not snapshot.valid:
            return PackageBuildResult(message=NO_REGISTRATIONS_MESSAGE, skipped=snapshot.skipped)

        test_data = await self.reader.load_test_with_questions(db, test_id)
        if test_data is None:
            return PackageBuildResult(
                message=f"Test with ID {test_id} not found",
                skipped=snapshot.total
            )

        enrollments = [
            e for e in snapshot.valid
            if can_transition(e.sync_status, SyncStatus.DOWNLOADED)
        ]
        student_ids = sorted({e.student_id for e in enrollments})
        users = await self.reader.load_students(db, student_ids)

        now = datetime.utcnow()
        package_id = make_package_id(test_center_id, test_id)
        enrollment_ids = [e.id for e in enrollments]

        # One bulk update keyed by exactly the packaged ids
        await db.execute(
            update(TestEnrollment)
            .where(TestEnrollment.id.in_(enrollment_ids))
            .values(
                sync_status=SyncStatus.DOWNLOADED,
                package_id=package_id,
                downloaded_at=now,
                last_modified=now
            )
        )
        await db.commit()

        package = {
            "packageId": package_id,
            "testCenterId": test_center_id,
            "testId": test_id,
            "testTitle": test_data["title"],
            "generatedAt": now.isoformat(),
            "enrollments": [
                {
                    "enrollmentId": e.id,
                    "studentId": e.student_id,
                    "testId": e.test_id,
                    "accessCode": e.access_code,
                    "scheduledTime": e.scheduled_time,
                }
                for e in enrollments
            ],
            "users": users,
            "test": test_data,
            "metadata": {
                "totalEnrollments": len(enrollments),
                "totalUsers": len(student_ids),
                "totalQuestions": len(test_data["questions"]),
                "skippedEnrollments": snapshot.skipped,
                "downloadFormat": "json",
                "offlineDbSetup": {
                    "singleTest": True,
                    "testId": test_id,
                    "testTitle": test_data["title"],
                },
            },
        }

        SYNC_PACKAGES_CREATED.inc()
        SYNC_ENROLLMENTS_DOWNLOADED.inc(len(enrollments))
        logger.info(
            f"Created download package {package_id} for test \"{test_data['title']}\" "
            f"with {len(enrollments)} enrollments, {len(users)} users"
        )

        return PackageBuildResult(
            message=(
                f"Package created for test \"{test_data['title']}\" "
                f"with {len(enrollments)} student registrations"
            ),
            package_id=package_id,
            package=package,
            skipped=snapshot.skipped
        )
