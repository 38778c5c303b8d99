"""
Shared fixtures for the offline sync test suite.

Each test gets its own SQLite file database so concurrent sessions behave the
way they would against a real server.
"""

import pytest
from datetime import datetime
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from exam_sync.core.config import Settings
from exam_sync.core.database import get_db, init_db
from exam_sync.main import create_app
from exam_sync.models import Subject, Test, Question, User, UserRole, TestEnrollment, SyncStatus

CENTER_ID = "C1"
OTHER_CENTER_ID = "C2"


@pytest.fixture
def test_settings(tmp_path):
    """Settings pointing at a throwaway database"""
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'sync.db'}",
        AUTH_ENABLED=True,
        JWT_SECRET_KEY="test-secret-key",
        SYNC_RECENT_PACKAGES_LIMIT=5
    )


@pytest.fixture
async def engine(test_settings):
    engine = create_async_engine(test_settings.DATABASE_URL)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def fetch_enrollments(session_factory):
    """Read enrollments through a fresh session, bypassing any identity map"""

    async def _fetch(ids=None):
        async with session_factory() as session:
            query = select(TestEnrollment).order_by(TestEnrollment.id)
            if ids is not None:
                query = query.where(TestEnrollment.id.in_(ids))
            result = await session.execute(query)
            return result.scalars().all()

    return _fetch


@pytest.fixture
async def seed(db_session):
    """Test T1 with five questions and three registered students at center C1"""
    subject = Subject(name="Mathematics", description="Arithmetic basics")
    db_session.add(subject)
    await db_session.flush()

    test = Test(
        title="Sync Test - Mathematics",
        description="Offline arithmetic test",
        instructions="Answer all questions.",
        duration=30,
        passing_score=70,
        subject_id=subject.id,
        test_center_id=CENTER_ID
    )
    db_session.add(test)
    await db_session.flush()

    questions = [
        Question(
            test_id=test.id,
            position=i,
            question=f"What is {i} + {i}?",
            options=[str(2 * i - 1), str(2 * i), str(2 * i + 1), str(2 * i + 2)],
            correct_answer="B",
            explanation=f"{i} + {i} = {2 * i}",
            difficulty="easy",
            points=1,
            image_url=f"https://media.example.com/q{i}.png" if i == 1 else None
        )
        for i in range(1, 6)
    ]
    db_session.add_all(questions)

    students = [
        User(
            email=f"student{i}@example.com",
            first_name=f"Student{i}",
            last_name="Test",
            student_reg_number=f"REG{i:03d}",
            role=UserRole.STUDENT
        )
        for i in range(1, 4)
    ]
    db_session.add_all(students)
    await db_session.flush()

    enrollments = [
        TestEnrollment(
            test_id=test.id,
            student_id=student.id,
            test_center_id=CENTER_ID,
            access_code=f"ACCESS{i:03d}",
            scheduled_time=f"{9 + i}:00",
            sync_status=SyncStatus.REGISTERED
        )
        for i, student in enumerate(students)
    ]
    db_session.add_all(enrollments)
    await db_session.commit()

    return {
        "subject": subject,
        "test": test,
        "questions": questions,
        "students": students,
        "enrollments": enrollments,
    }


@pytest.fixture
def make_result():
    """Build an upload result payload for an enrollment"""

    def _make(enrollment_id, student_id, test_id, score=85.0, **overrides):
        result = {
            "enrollmentId": enrollment_id,
            "studentId": student_id,
            "testId": test_id,
            "answers": {"1": "B", "2": "B", "3": "B", "4": "B", "5": "B"},
            "startTime": "2025-08-25T09:00:00Z",
            "endTime": "2025-08-25T09:30:00Z",
            "score": score,
        }
        result.update(overrides)
        return result

    return _make


@pytest.fixture
def app(test_settings, session_factory):
    app = create_app(test_settings)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers(app):
    """Bearer headers for a principal with the given role and center"""

    def _headers(role=UserRole.ADMIN, test_center_id=None, subject="operator-1"):
        token = app.state.jwt_manager.create_access_token(
            subject=subject,
            role=role.value,
            test_center_id=test_center_id
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def admin_headers(auth_headers):
    return auth_headers(UserRole.ADMIN, subject="admin-1")


@pytest.fixture
def center_headers(auth_headers):
    return auth_headers(UserRole.TEST_CENTER_OWNER, test_center_id=CENTER_ID, subject="owner-c1")


@pytest.fixture
def utcnow():
    return datetime.utcnow()
