from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.sql import func
from appraisal_api.database import Base

class PerformanceAnalytics(Base):
    __tablename__ = "performance_analytics"
    __table_args__ = (UniqueConstraint("employee_id", "cycle_id", name="uq_analytics_employee_cycle"),)

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    cycle_id = Column(Integer, ForeignKey("appraisal_cycles.id", ondelete="CASCADE"), nullable=False)
    overall_score = Column(Float, nullable=True)
    performance_band = Column(String, nullable=True)
    section_scores = Column(JSON, nullable=True)  # {"sections": [...], "base_score": x, "noteworthy_bonus": y}
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
