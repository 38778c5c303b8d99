"""
Tests for the enrollment and user tables
"""

import pytest
from sqlalchemy import inspect

from exam_sync.models import TestEnrollment, SyncStatus, User


class TestEnrollmentColumns:
    """Test that sync metadata is stored as plain columns"""

    def test_sync_metadata_columns(self):
        columns = set(inspect(TestEnrollment).columns.keys())

        assert {
            "sync_status",
            "package_id",
            "downloaded_at",
            "results_uploaded_at",
            "offline_score",
            "offline_answers",
            "last_modified",
        } <= columns

    def test_no_derived_attributes(self):
        assert not hasattr(TestEnrollment, "sync_metadata")
        assert not hasattr(User, "full_name")

    @pytest.mark.asyncio
    async def test_new_enrollment_is_registered(self, seed, fetch_enrollments):
        enrollments = await fetch_enrollments()

        assert len(enrollments) == 3
        assert all(e.sync_status == SyncStatus.REGISTERED for e in enrollments)
        assert all(e.package_id is None and e.offline_score is None for e in enrollments)
        assert all(e.last_modified is not None for e in enrollments)
