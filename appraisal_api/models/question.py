"""
Question bank: sections, questions and explicit per-employee assignments.
"""
from sqlalchemy import Column, Integer, String, Float, Text, Boolean, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from appraisal_api.database import Base
import enum


class ScoringType(str, enum.Enum):
    RATING = "rating"
    TEXT = "text"
    MULTIPLE_CHOICE = "multiple_choice"
    YES_NO = "yes_no"


class AppraisalQuestionSection(Base):
    __tablename__ = "appraisal_question_sections"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, unique=True)
    description = Column(Text, nullable=True)
    weight = Column(Float, default=1.0, nullable=False)
    max_score = Column(Integer, default=5, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    scoring_type = Column(String, default=ScoringType.RATING.value, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    questions = relationship("AppraisalQuestion", back_populates="section", cascade="all, delete-orphan")


class AppraisalQuestion(Base):
    __tablename__ = "appraisal_questions"

    id = Column(Integer, primary_key=True, index=True)
    section_id = Column(Integer, ForeignKey("appraisal_question_sections.id", ondelete="CASCADE"), nullable=True, index=True)
    cycle_id = Column(Integer, ForeignKey("appraisal_cycles.id", ondelete="SET NULL"), nullable=True)
    question_text = Column(Text, nullable=False)
    question_type = Column(String, default=ScoringType.RATING.value, nullable=False)
    multiple_choice_options = Column(JSON, default=list)
    weight = Column(Float, default=1.0, nullable=False)
    is_required = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, default=0)
    applies_to_roles = Column(JSON, nullable=True)  # None = everyone
    applies_to_departments = Column(JSON, nullable=True)  # list of department ids
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    section = relationship("AppraisalQuestionSection", back_populates="questions")

    @property
    def is_rating(self) -> bool:
        return self.question_type == ScoringType.RATING.value

    def applies_to(self, profile) -> bool:
        role = profile.role.value if hasattr(profile.role, "value") else profile.role
        if self.applies_to_roles and role not in self.applies_to_roles:
            return False
        if self.applies_to_departments and profile.department_id not in self.applies_to_departments:
            return False
        return True


class EmployeeQuestionAssignment(Base):
    __tablename__ = "employee_appraisal_questions"
    __table_args__ = (UniqueConstraint("employee_id", "question_id", "cycle_id", name="uq_employee_question_cycle"),)

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("appraisal_questions.id", ondelete="CASCADE"), nullable=False)
    cycle_id = Column(Integer, ForeignKey("appraisal_cycles.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_by = Column(Integer, ForeignKey("profiles.id"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    assigned_at = Column(DateTime(timezone=True), server_default=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    question = relationship("AppraisalQuestion")
