from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, Float, JSON, ForeignKey, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from exam_sync.core.database import Base


class Subject(Base):
    """Model for question subjects."""
    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Test(Base):
    """Model for an authored test, as produced by the test-authoring service."""
    __tablename__ = "tests"
    __test__ = False  # keep pytest from collecting this model

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    instructions = Column(Text, nullable=True)
    duration = Column(Integer, nullable=False)  # minutes
    passing_score = Column(Float, nullable=True)
    status = Column(String(20), default="published")
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=True)
    test_center_id = Column(String(100), nullable=True, index=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    subject = relationship("Subject", foreign_keys=[subject_id])
    questions = relationship(
        "Question",
        back_populates="test",
        order_by="Question.position"
    )


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    test_id = Column(Integer, ForeignKey("tests.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    question = Column(Text, nullable=False)
    options = Column(JSON, nullable=False)  # list of option strings
    correct_answer = Column(String(10), nullable=False)
    explanation = Column(Text, nullable=True)
    difficulty = Column(String(20), default="medium")
    points = Column(Float, default=1.0)
    image_url = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    test = relationship("Test", back_populates="questions")

    __table_args__ = (
        Index('idx_question_test_position', 'test_id', 'position'),
    )
