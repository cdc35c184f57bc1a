from sqlalchemy import Column, Integer, String, Float, Boolean, Date, DateTime, Time, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from appraisal_api.database import Base


class AttendanceRule(Base):
    __tablename__ = "attendance_rules"

    id = Column(Integer, primary_key=True, index=True)
    rule_name = Column(String, nullable=False)
    work_start_time = Column(Time, nullable=False)
    work_end_time = Column(Time, nullable=False)
    grace_period_minutes = Column(Integer, default=15, nullable=False)
    late_charge_amount = Column(Float, default=0.0, nullable=False)
    absence_charge_amount = Column(Float, default=0.0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, ForeignKey("profiles.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class AttendanceLog(Base):
    __tablename__ = "attendance_logs"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    work_date = Column(Date, nullable=False, index=True)
    clock_in_time = Column(DateTime, nullable=False)
    clock_out_time = Column(DateTime, nullable=True)
    location_type = Column(String, default="office", nullable=False)  # office, field
    field_work_reason = Column(String, nullable=True)
    is_late = Column(Boolean, default=False, nullable=False)
    late_by_minutes = Column(Integer, default=0, nullable=False)
    total_hours = Column(Float, nullable=True)
    auto_clocked_out = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    employee = relationship("Profile")


class AttendanceCharge(Base):
    __tablename__ = "attendance_charges"
    __table_args__ = (UniqueConstraint("employee_id", "charge_date", "charge_type", name="uq_charge_employee_date_type"),)

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    attendance_log_id = Column(Integer, ForeignKey("attendance_logs.id", ondelete="SET NULL"), nullable=True)
    charge_date = Column(Date, nullable=False)
    charge_type = Column(String, nullable=False)  # late, absence
    amount = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
