from .user import User, UserRole
from .test import Subject, Test, Question
from .test_enrollment import TestEnrollment, SyncStatus
from .sync_audit_log import SyncStatusAuditLog

__all__ = [
    "User",
    "UserRole",
    "Subject",
    "Test",
    "Question",
    "TestEnrollment",
    "SyncStatus",
    "SyncStatusAuditLog",
]
