from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum as SQLEnum
from sqlalchemy.sql import func
import enum

from exam_sync.core.database import Base


class UserRole(str, enum.Enum):
    STUDENT = "student"
    TEST_CENTER_OWNER = "test_center_owner"
    TEST_CREATOR = "test_creator"
    ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    student_reg_number = Column(String(50), nullable=True, index=True)
    profile_picture = Column(String(500), nullable=True)  # URL, never bytes
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.STUDENT)
    is_active = Column(Boolean, default=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
