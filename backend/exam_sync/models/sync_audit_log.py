from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime

from exam_sync.core.database import Base
from exam_sync.models.test_enrollment import SyncStatus


class SyncStatusAuditLog(Base):
    """One row per enrollment touched by a manual sync status override."""
    __tablename__ = "sync_status_audit_logs"

    id = Column(Integer, primary_key=True, index=True)

    enrollment_id = Column(Integer, ForeignKey("test_enrollments.id"), nullable=False, index=True)
    changed_by = Column(String(100), nullable=False)  # principal id

    action = Column(String(50), nullable=False, default="manual_override")
    old_status = Column(SQLEnum(SyncStatus), nullable=True)
    new_status = Column(SQLEnum(SyncStatus), nullable=False)
    reason = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)

    enrollment = relationship("TestEnrollment")
