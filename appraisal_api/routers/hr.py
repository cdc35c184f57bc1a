from datetime import datetime, timezone
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from appraisal_api.core.schemas import ApiResponse
from appraisal_api.database import get_db
from appraisal_api.models.profile import Profile
from appraisal_api.routers.appraisals import to_detail
from appraisal_api.routers.auth_deps import get_current_user, require_hr
from appraisal_api.routers.committee import schedule_analytics
from appraisal_api.schemas.analytics import DashboardStats, PerformanceAnalyticsResponse
from appraisal_api.schemas.appraisal import AppraisalDetail, SubmissionLocks, SubmissionLocksResponse
from appraisal_api.schemas.audit import AuditLogResponse
from appraisal_api.services.analytics_service import AnalyticsService
from appraisal_api.services.appraisal_service import AppraisalService, get_settings, load_appraisal
from appraisal_api.services.audit import MAX_PAGE, AuditService
from appraisal_api.services.notification_service import schedule_pushes

router = APIRouter(prefix="/hr", tags=["HR"])


@router.post("/appraisals/{appraisal_id}/finalize", response_model=AppraisalDetail)
def hr_finalize(
    appraisal_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    appraisal = load_appraisal(db, appraisal_id)
    AppraisalService(db, current_user).hr_finalize(appraisal)
    schedule_pushes(background_tasks, db)
    schedule_analytics(background_tasks, appraisal)
    return to_detail(appraisal, current_user)


@router.get("/settings/locks", response_model=SubmissionLocksResponse)
def get_submission_locks(
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    settings_row = get_settings(db)
    db.commit()
    return settings_row


@router.put("/settings/locks", response_model=SubmissionLocksResponse)
def update_submission_locks(
    data: SubmissionLocks,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    settings_row = get_settings(db)
    before = {
        "submission_locked": settings_row.submission_locked,
        "manager_submission_locked": settings_row.manager_submission_locked,
    }
    changes = data.model_dump(exclude_none=True)
    for key, value in changes.items():
        setattr(settings_row, key, value)
    settings_row.locked_by = current_user.id
    settings_row.locked_at = datetime.now(timezone.utc)
    AuditService.log(db, "update_submission_locks", "appraisal_settings", settings_row.id,
                     current_user.id, current_user.role, changes, before_state=before, after_state=changes)
    db.commit()
    db.refresh(settings_row)
    return settings_row


@router.get("/dashboard", response_model=ApiResponse[DashboardStats])
def dashboard(
    cycle_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    stats = AnalyticsService(db).dashboard(cycle_id)
    return ApiResponse.ok(DashboardStats(**stats), metadata={"cycle_id": cycle_id})


@router.get("/analytics/{employee_id}/{cycle_id}", response_model=PerformanceAnalyticsResponse)
def get_analytics(
    employee_id: int,
    cycle_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    if not (current_user.is_hr or current_user.id == employee_id):
        raise HTTPException(status_code=403, detail="Access denied")
    record = AnalyticsService(db).get_for(employee_id, cycle_id)
    if not record:
        raise HTTPException(status_code=404, detail="No analytics recorded for this employee and cycle")
    return record


@router.post("/analytics/recalculate/{appraisal_id}", response_model=PerformanceAnalyticsResponse)
def recalculate_analytics(
    appraisal_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    record = AnalyticsService(db, current_user).calculate_and_save(appraisal_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Appraisal not found or has no responses")
    return record


@router.get("/audit-logs", response_model=List[AuditLogResponse])
def list_audit_logs(
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    limit: int = Query(100, ge=1, le=MAX_PAGE),
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    return AuditService(db).recent(entity_type, entity_id, limit)
