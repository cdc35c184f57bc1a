from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from appraisal_api.database import Base
import enum


class CycleStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"


class AppraisalCycle(Base):
    __tablename__ = "appraisal_cycles"
    __table_args__ = (UniqueConstraint("year", "quarter", name="uq_cycle_year_quarter"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    quarter = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String, default=CycleStatus.DRAFT.value, nullable=False, index=True)
    created_by = Column(Integer, ForeignKey("profiles.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    appraisals = relationship("Appraisal", back_populates="cycle", cascade="all, delete-orphan")

    @property
    def label(self) -> str:
        return f"{self.name} (Q{self.quarter} {self.year})"
