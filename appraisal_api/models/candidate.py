from sqlalchemy import Column, Integer, String, Float, Text, DateTime
from sqlalchemy.sql import func
from appraisal_api.database import Base
import enum

class CandidateStatus(str, enum.Enum):
    NEW = "new"
    REVIEWING = "reviewing"
    HIRED = "hired"
    REJECTED = "rejected"

class Candidate(Base):
    __tablename__ = "candidates"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, nullable=False)
    email = Column(String, nullable=False, index=True)
    position = Column(String, nullable=False)
    experience_years = Column(Float, nullable=True)
    resume_summary = Column(Text, nullable=True)
    match_score = Column(Integer, nullable=True)  # 0-100, set by reviewer
    status = Column(String, default=CandidateStatus.NEW.value, nullable=False, index=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
