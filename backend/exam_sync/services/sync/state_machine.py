"""
Enrollment sync-status state machine.

Automatic transitions are the edges this service takes on its own while
building packages and reconciling results. The manual override in
``SyncStatusStateMachine.set_status`` is an operator escape hatch that ignores
the table but leaves an audit row per enrollment.
"""

import logging
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from exam_sync.core.metrics import SYNC_STATUS_OVERRIDES
from exam_sync.models.sync_audit_log import SyncStatusAuditLog
from exam_sync.models.test_enrollment import SyncStatus, TestEnrollment

logger = logging.getLogger(__name__)


AUTOMATIC_TRANSITIONS: Dict[SyncStatus, FrozenSet[SyncStatus]] = {
    SyncStatus.REGISTERED: frozenset({SyncStatus.DOWNLOADED}),
    SyncStatus.DOWNLOADED: frozenset({SyncStatus.RESULTS_UPLOADED}),
    # test_taken is only ever set by an operator
    SyncStatus.TEST_TAKEN: frozenset({SyncStatus.RESULTS_UPLOADED}),
    # re-upload overwrites the previous offline result
    SyncStatus.RESULTS_UPLOADED: frozenset({SyncStatus.RESULTS_UPLOADED}),
}


def can_transition(current: SyncStatus, target: SyncStatus) -> bool:
    """Whether the service may move an enrollment from ``current`` to ``target``."""
    return SyncStatus(target) in AUTOMATIC_TRANSITIONS.get(SyncStatus(current), frozenset())


class SyncStatusStateMachine:
    """Manual sync status overrides."""

    async def set_status(
        self,
        db: AsyncSession,
        enrollment_ids: List[int],
        status: SyncStatus,
        changed_by: str,
        reason: Optional[str] = None,
        test_center_id: Optional[str] = None
    ) -> int:
        """
        Force ``status`` onto the given enrollments.

        Forward-only ordering is not enforced. When ``test_center_id`` is given
        only enrollments of that center are touched. Returns the number of
        enrollments updated.
        """
        status = SyncStatus(status)

        query = select(TestEnrollment.id, TestEnrollment.sync_status).where(
            TestEnrollment.id.in_(enrollment_ids)
        )
        if test_center_id is not None:
            query = query.where(TestEnrollment.test_center_id == test_center_id)

        result = await db.execute(query)
        previous = result.all()

        if not previous:
            logger.info(f"Manual status override to {status.value} matched no enrollments")
            return 0

        now = datetime.utcnow()
        matched_ids = [row.id for row in previous]

        db.add_all([
            SyncStatusAuditLog(
                enrollment_id=row.id,
                changed_by=changed_by,
                action="manual_override",
                old_status=row.sync_status,
                new_status=status,
                reason=reason,
                created_at=now
            )
            for row in previous
        ])

        await db.execute(
            update(TestEnrollment)
            .where(TestEnrollment.id.in_(matched_ids))
            .values(sync_status=status, last_modified=now)
        )
        await db.commit()

        SYNC_STATUS_OVERRIDES.labels(status=status.value).inc(len(matched_ids))
        logger.info(
            f"Manual status override by {changed_by}: {len(matched_ids)} enrollments set to {status.value}"
        )
        return len(matched_ids)
