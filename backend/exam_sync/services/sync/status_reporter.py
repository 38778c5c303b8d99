"""
Aggregate sync progress of one test center over a time window.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import and_, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from exam_sync.models.test_enrollment import SyncStatus, TestEnrollment
from .exceptions import SyncValidationError

logger = logging.getLogger(__name__)


def _to_naive_utc(value: datetime) -> datetime:
    # Stored timestamps are naive UTC
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class SyncStatusReporter:
    """Grouped status counts and recent packages for a test center. Read only."""

    def __init__(self, window_days: int = 30, recent_packages_limit: int = 10):
        self.window_days = window_days
        self.recent_packages_limit = recent_packages_limit

    def resolve_period(self, start: Optional[datetime], end: Optional[datetime]):
        end = _to_naive_utc(end) if end else datetime.utcnow()
        start = _to_naive_utc(start) if start else end - timedelta(days=self.window_days)
        if start > end:
            raise SyncValidationError("'from' must not be later than 'to'")
        return start, end

    async def report(
        self,
        db: AsyncSession,
        test_center_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> Dict[str, Any]:
        start, end = self.resolve_period(start, end)

        in_window = and_(
            TestEnrollment.test_center_id == test_center_id,
            or_(
                TestEnrollment.created_at.between(start, end),
                TestEnrollment.last_modified.between(start, end)
            )
        )

        counts = await db.execute(
            select(TestEnrollment.sync_status, func.count(TestEnrollment.id))
            .where(in_window)
            .group_by(TestEnrollment.sync_status)
        )
        summary = {status.value: 0 for status in SyncStatus}
        for status, count in counts.all():
            summary[SyncStatus(status).value] = count

        last_download = func.max(TestEnrollment.downloaded_at).label("last_download")
        packages = await db.execute(
            select(
                TestEnrollment.package_id,
                last_download,
                func.count(TestEnrollment.id).label("enrollments")
            )
            .where(in_window, TestEnrollment.package_id.isnot(None))
            .group_by(TestEnrollment.package_id)
            .order_by(desc(last_download), desc(TestEnrollment.package_id))
            .limit(self.recent_packages_limit)
        )
        recent_packages = [
            {
                "packageId": row.package_id,
                "downloadedAt": row.last_download,
                "enrollments": row.enrollments,
            }
            for row in packages.all()
        ]

        total = sum(summary.values())
        logger.info(
            f"Sync status for test center {test_center_id} from {start} to {end}: "
            f"{total} enrollments, {len(recent_packages)} recent packages"
        )

        return {
            "testCenterId": test_center_id,
            "period": {"from": start, "to": end},
            "summary": summary,
            "totalEnrollments": total,
            "recentPackages": recent_packages,
        }
