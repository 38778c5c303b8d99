"""
Read side of package construction: enrollments, students and the test with
its questions for one (test center, test) pair.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from exam_sync.models.test import Question, Test
from exam_sync.models.test_enrollment import SyncStatus, TestEnrollment
from exam_sync.models.user import User

logger = logging.getLogger(__name__)


@dataclass
class EnrollmentSnapshot:
    """Registered enrollments for a pair, split into usable and dangling rows."""
    valid: List[TestEnrollment] = field(default_factory=list)
    skipped: int = 0

    @property
    def total(self) -> int:
        return len(self.valid) + self.skipped


class EnrollmentSnapshotReader:
    """Loads the rows a download package is assembled from."""

    async def read_registered(
        self,
        db: AsyncSession,
        test_center_id: str,
        test_id: int
    ) -> EnrollmentSnapshot:
        """Registered enrollments of the pair; rows whose student or test is gone are counted, not returned."""
        query = (
            select(TestEnrollment, User.id, Test.id)
            .outerjoin(User, User.id == TestEnrollment.student_id)
            .outerjoin(Test, Test.id == TestEnrollment.test_id)
            .where(
                TestEnrollment.test_id == test_id,
                TestEnrollment.test_center_id == test_center_id,
                TestEnrollment.sync_status == SyncStatus.REGISTERED
            )
            .order_by(TestEnrollment.id)
        )
        result = await db.execute(query)

        snapshot = EnrollmentSnapshot()
        for enrollment, student_id, resolved_test_id in result.all():
            if student_id is None or resolved_test_id is None:
                snapshot.skipped += 1
                continue
            snapshot.valid.append(enrollment)

        return snapshot

    async def load_test_with_questions(
        self,
        db: AsyncSession,
        test_id: int
    ) -> Optional[Dict[str, Any]]:
        """Test document with its subject populated and question set embedded."""
        result = await db.execute(
            select(Test).options(selectinload(Test.subject)).where(Test.id == test_id)
        )
        test = result.scalar_one_or_none()
        if test is None:
            return None

        questions_result = await db.execute(
            select(Question)
            .where(Question.test_id == test_id)
            .order_by(Question.position, Question.id)
        )
        questions = questions_result.scalars().all()

        subject = None
        if test.subject is not None:
            subject = {
                "id": test.subject.id,
                "name": test.subject.name,
                "description": test.subject.description,
            }

        return {
            "id": test.id,
            "title": test.title,
            "description": test.description,
            "instructions": test.instructions,
            "duration": test.duration,
            "passingScore": test.passing_score,
            "status": test.status,
            "subject": subject,
            "questions": [question_to_dict(q) for q in questions],
        }

    async def load_students(
        self,
        db: AsyncSession,
        student_ids: Sequence[int]
    ) -> List[Dict[str, Any]]:
        """Minimal student projections, ordered by id."""
        if not student_ids:
            return []

        result = await db.execute(
            select(User).where(User.id.in_(student_ids)).order_by(User.id)
        )
        return [
            {
                "id": user.id,
                "firstName": user.first_name,
                "lastName": user.last_name,
                "email": user.email,
                "studentRegNumber": user.student_reg_number,
                "profilePicture": user.profile_picture,
            }
            for user in result.scalars().all()
        ]


def question_to_dict(question: Question) -> Dict[str, Any]:
    return {
        "id": question.id,
        "position": question.position,
        "question": question.question,
        "options": question.options,
        "correctAnswer": question.correct_answer,
        "explanation": question.explanation,
        "difficulty": question.difficulty,
        "points": question.points,
        "imageUrl": question.image_url,
    }
