"""
Training / LMS models.
"""
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from appraisal_api.database import Base
import enum


class TrainingRequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AssignmentStatus(str, enum.Enum):
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Training(Base):
    __tablename__ = "trainings"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    content_type = Column(String, default="video", nullable=False)  # video, audio, document
    content_url = Column(String, nullable=True)
    duration_minutes = Column(Integer, nullable=True)
    pass_mark = Column(Integer, default=70, nullable=False)
    max_attempts = Column(Integer, default=3, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, ForeignKey("profiles.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    quiz_questions = relationship("QuizQuestion", back_populates="training", cascade="all, delete-orphan")


class QuizQuestion(Base):
    __tablename__ = "training_quiz_questions"

    id = Column(Integer, primary_key=True, index=True)
    training_id = Column(Integer, ForeignKey("trainings.id", ondelete="CASCADE"), nullable=False, index=True)
    question_text = Column(Text, nullable=False)
    options = Column(JSON, default=list)
    correct_answer = Column(String, nullable=False)
    points = Column(Integer, default=1, nullable=False)

    training = relationship("Training", back_populates="quiz_questions")


class TrainingRequest(Base):
    __tablename__ = "training_requests"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    requested_by = Column(Integer, ForeignKey("profiles.id"), nullable=False)
    justification = Column(Text, nullable=False)
    recommended_training_type = Column(String, nullable=True)
    status = Column(String, default=TrainingRequestStatus.PENDING.value, nullable=False, index=True)
    processed_by = Column(Integer, ForeignKey("profiles.id"), nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class TrainingAssignment(Base):
    __tablename__ = "training_assignments"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    training_id = Column(Integer, ForeignKey("trainings.id", ondelete="CASCADE"), nullable=False)
    request_id = Column(Integer, ForeignKey("training_requests.id"), nullable=True)
    assigned_by = Column(Integer, ForeignKey("profiles.id"), nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    status = Column(String, default=AssignmentStatus.ASSIGNED.value, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    training = relationship("Training")
    attempts = relationship("QuizAttempt", back_populates="assignment", cascade="all, delete-orphan", order_by="QuizAttempt.attempt_number")


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(Integer, ForeignKey("training_assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    attempt_number = Column(Integer, nullable=False)
    score_percentage = Column(Integer, nullable=False)
    passed = Column(Boolean, default=False, nullable=False)
    answers = Column(JSON, default=dict)
    completed_at = Column(DateTime(timezone=True), server_default=func.now())

    assignment = relationship("TrainingAssignment", back_populates="attempts")
