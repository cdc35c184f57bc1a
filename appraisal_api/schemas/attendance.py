from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import date, datetime, time


class AttendanceRuleCreate(BaseModel):
    rule_name: str = Field(..., min_length=1)
    work_start_time: time
    work_end_time: time
    grace_period_minutes: int = Field(15, ge=0)
    late_charge_amount: float = Field(0.0, ge=0)
    absence_charge_amount: float = Field(0.0, ge=0)


class AttendanceRuleResponse(AttendanceRuleCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    is_active: bool


class ClockInRequest(BaseModel):
    location_type: str = "office"
    field_work_reason: Optional[str] = None


class AttendanceLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    work_date: date
    clock_in_time: datetime
    clock_out_time: Optional[datetime] = None
    location_type: str
    field_work_reason: Optional[str] = None
    is_late: bool
    late_by_minutes: int
    total_hours: Optional[float] = None
    auto_clocked_out: bool = False


class DailyChargesRequest(BaseModel):
    charge_date: date


class AutoClockoutRequest(BaseModel):
    run_date: Optional[date] = None


class AttendanceChargeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    attendance_log_id: Optional[int] = None
    charge_date: date
    charge_type: str
    amount: float
