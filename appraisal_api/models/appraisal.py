from sqlalchemy import (
    Column, Integer, String, Float, Text, Boolean, DateTime, ForeignKey,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from appraisal_api.database import Base
import enum


class AppraisalStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    MANAGER_REVIEW = "manager_review"
    COMMITTEE_REVIEW = "committee_review"
    HR_REVIEW = "hr_review"
    COMPLETED = "completed"


class Appraisal(Base):
    __tablename__ = "appraisals"
    __table_args__ = (UniqueConstraint("employee_id", "cycle_id", name="uq_appraisal_employee_cycle"),)

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    cycle_id = Column(Integer, ForeignKey("appraisal_cycles.id", ondelete="CASCADE"), nullable=False, index=True)
    manager_id = Column(Integer, ForeignKey("profiles.id"), nullable=True)

    # Stored as the enum value; SQLite has no native enum
    status = Column(String, default=AppraisalStatus.DRAFT.value, nullable=False, index=True)

    emp_comments = Column(Text, nullable=True)
    mgr_comments = Column(Text, nullable=True)
    committee_comments = Column(Text, nullable=True)
    goals = Column(Text, nullable=True)
    training_needs = Column(Text, nullable=True)
    noteworthy = Column(Text, nullable=True)  # comma-separated section keywords

    employee_submitted_at = Column(DateTime(timezone=True), nullable=True)
    manager_reviewed_at = Column(DateTime(timezone=True), nullable=True)
    manager_reviewed_by = Column(Integer, ForeignKey("profiles.id"), nullable=True)
    committee_reviewed_at = Column(DateTime(timezone=True), nullable=True)
    committee_reviewed_by = Column(Integer, ForeignKey("profiles.id"), nullable=True)
    hr_finalized_at = Column(DateTime(timezone=True), nullable=True)
    hr_reviewer_id = Column(Integer, ForeignKey("profiles.id"), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    overall_score = Column(Float, nullable=True)
    performance_band = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    employee = relationship("Profile", foreign_keys=[employee_id])
    manager = relationship("Profile", foreign_keys=[manager_id])
    cycle = relationship("AppraisalCycle", back_populates="appraisals")
    responses = relationship(
        "AppraisalResponse",
        back_populates="appraisal",
        cascade="all, delete-orphan",
        order_by="AppraisalResponse.id",
    )

    def __repr__(self):
        return f"<Appraisal {self.id} employee={self.employee_id} cycle={self.cycle_id} [{self.status}]>"


class AppraisalResponse(Base):
    __tablename__ = "appraisal_responses"
    __table_args__ = (
        UniqueConstraint("appraisal_id", "question_id", name="uq_response_appraisal_question"),
        CheckConstraint("emp_rating IS NULL OR (emp_rating BETWEEN 1 AND 5)", name="ck_emp_rating_range"),
        CheckConstraint("mgr_rating IS NULL OR (mgr_rating BETWEEN 1 AND 5)", name="ck_mgr_rating_range"),
        CheckConstraint("committee_rating IS NULL OR (committee_rating BETWEEN 1 AND 5)", name="ck_committee_rating_range"),
    )

    id = Column(Integer, primary_key=True, index=True)
    appraisal_id = Column(Integer, ForeignKey("appraisals.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("appraisal_questions.id"), nullable=False)

    emp_rating = Column(Integer, nullable=True)
    emp_comment = Column(Text, nullable=True)
    mgr_rating = Column(Integer, nullable=True)
    mgr_comment = Column(Text, nullable=True)
    committee_rating = Column(Integer, nullable=True)
    committee_comment = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    appraisal = relationship("Appraisal", back_populates="responses")
    question = relationship("AppraisalQuestion")


class AppraisalSettings(Base):
    """Singleton row holding HR's submission locks."""
    __tablename__ = "appraisal_settings"

    id = Column(Integer, primary_key=True)
    submission_locked = Column(Boolean, default=False, nullable=False)
    manager_submission_locked = Column(Boolean, default=False, nullable=False)
    locked_by = Column(Integer, ForeignKey("profiles.id"), nullable=True)
    locked_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
