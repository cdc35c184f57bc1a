from datetime import date
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional

from appraisal_api.database import get_db
from appraisal_api.models.attendance import AttendanceCharge, AttendanceLog, AttendanceRule
from appraisal_api.models.profile import Profile
from appraisal_api.routers.auth_deps import get_current_user, require_hr
from appraisal_api.schemas.attendance import (
    AttendanceChargeResponse, AttendanceLogResponse, AttendanceRuleCreate, AttendanceRuleResponse,
    AutoClockoutRequest, ClockInRequest, DailyChargesRequest,
)
from appraisal_api.services.attendance_service import AttendanceService

router = APIRouter(prefix="/attendance", tags=["Attendance"])


@router.get("/rules/active", response_model=Optional[AttendanceRuleResponse])
def get_active_rule(
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    return AttendanceService(db).active_rule()


@router.post("/rules", response_model=AttendanceRuleResponse, status_code=status.HTTP_201_CREATED)
def create_rule(
    data: AttendanceRuleCreate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    """The new rule becomes the only active one."""
    db.query(AttendanceRule).filter(AttendanceRule.is_active == True).update(  # noqa: E712
        {AttendanceRule.is_active: False}, synchronize_session=False
    )
    rule = AttendanceRule(**data.model_dump(), created_by=current_user.id, is_active=True)
    db.add(rule)
    db.commit()
    db.refresh(rule)
    return rule


@router.post("/clock-in", response_model=AttendanceLogResponse, status_code=status.HTTP_201_CREATED)
def clock_in(
    data: ClockInRequest,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    return AttendanceService(db, current_user).clock_in(current_user, data.location_type, data.field_work_reason)


@router.post("/clock-out", response_model=AttendanceLogResponse)
def clock_out(
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    return AttendanceService(db, current_user).clock_out(current_user)


@router.get("/logs/my", response_model=List[AttendanceLogResponse])
def my_logs(
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    query = db.query(AttendanceLog).filter(AttendanceLog.employee_id == current_user.id)
    if start:
        query = query.filter(AttendanceLog.work_date >= start)
    if end:
        query = query.filter(AttendanceLog.work_date <= end)
    return query.order_by(AttendanceLog.clock_in_time.desc()).all()


@router.get("/logs", response_model=List[AttendanceLogResponse])
def all_logs(
    work_date: Optional[date] = None,
    employee_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    query = db.query(AttendanceLog)
    if work_date:
        query = query.filter(AttendanceLog.work_date == work_date)
    if employee_id:
        query = query.filter(AttendanceLog.employee_id == employee_id)
    return query.order_by(AttendanceLog.clock_in_time.desc()).all()


@router.post("/charges/calculate", response_model=List[AttendanceChargeResponse])
def calculate_daily_charges(
    data: DailyChargesRequest,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    return AttendanceService(db, current_user).calculate_daily_charges(data.charge_date)


@router.post("/auto-clockout", response_model=List[AttendanceLogResponse])
def auto_clockout(
    data: AutoClockoutRequest,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    """Closes logs left open on earlier days; meant for a scheduled job."""
    return AttendanceService(db, current_user).auto_clock_out(data.run_date)


@router.get("/charges", response_model=List[AttendanceChargeResponse])
def list_charges(
    employee_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    if employee_id is None:
        employee_id = current_user.id
    if employee_id != current_user.id and not current_user.is_hr:
        raise HTTPException(status_code=403, detail="Access denied")
    return db.query(AttendanceCharge).filter(
        AttendanceCharge.employee_id == employee_id
    ).order_by(AttendanceCharge.charge_date.desc()).all()
