from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional

from appraisal_api.database import get_db
from appraisal_api.models.appraisal import Appraisal, AppraisalStatus
from appraisal_api.models.profile import Profile
from appraisal_api.routers.auth_deps import get_current_user, require_admin, require_hr, require_manager
from appraisal_api.schemas.appraisal import (
    AppraisalDetail, AppraisalSummary, EmployeeResponsesUpdate, ManagerResponsesUpdate, StartAppraisalRequest,
)
from appraisal_api.services.appraisal_service import AppraisalService, can_view, load_appraisal
from appraisal_api.services.notification_service import schedule_pushes
from appraisal_api.services.workflow import available_actions

router = APIRouter(prefix="/appraisals", tags=["Appraisals"])


def to_detail(appraisal: Appraisal, actor: Profile) -> AppraisalDetail:
    detail = AppraisalDetail.model_validate(appraisal)
    detail.available_actions = [a.value for a in available_actions(appraisal, actor)]
    return detail


def get_visible_appraisal(appraisal_id: int, db: Session, actor: Profile) -> Appraisal:
    appraisal = load_appraisal(db, appraisal_id)
    if not can_view(actor, appraisal):
        raise HTTPException(status_code=403, detail="You do not have access to this appraisal")
    return appraisal


# --- Listings ---

@router.get("/my", response_model=List[AppraisalSummary])
def my_appraisals(
    cycle_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    query = db.query(Appraisal).filter(Appraisal.employee_id == current_user.id)
    if cycle_id:
        query = query.filter(Appraisal.cycle_id == cycle_id)
    return query.order_by(Appraisal.created_at.desc(), Appraisal.id.desc()).all()


@router.get("/team", response_model=List[AppraisalSummary])
def team_appraisals(
    status_filter: Optional[AppraisalStatus] = None,
    cycle_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_manager())
):
    """Appraisals of the caller's direct reports."""
    query = db.query(Appraisal).join(Profile, Profile.id == Appraisal.employee_id).filter(
        Profile.line_manager_id == current_user.id
    )
    if status_filter:
        query = query.filter(Appraisal.status == status_filter.value)
    if cycle_id:
        query = query.filter(Appraisal.cycle_id == cycle_id)
    return query.order_by(Appraisal.id).all()


def _by_status(db: Session, appraisal_status: AppraisalStatus, cycle_id: Optional[int]):
    query = db.query(Appraisal).filter(Appraisal.status == appraisal_status.value)
    if cycle_id:
        query = query.filter(Appraisal.cycle_id == cycle_id)
    return query


@router.get("/committee-queue", response_model=List[AppraisalSummary])
def committee_queue(
    cycle_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    return _by_status(db, AppraisalStatus.COMMITTEE_REVIEW, cycle_id).order_by(Appraisal.manager_reviewed_at).all()


@router.get("/hr-queue", response_model=List[AppraisalSummary])
def hr_queue(
    cycle_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    return _by_status(db, AppraisalStatus.HR_REVIEW, cycle_id).order_by(Appraisal.committee_reviewed_at).all()


@router.get("/completed", response_model=List[AppraisalSummary])
def completed_appraisals(
    cycle_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    return _by_status(db, AppraisalStatus.COMPLETED, cycle_id).order_by(Appraisal.completed_at.desc()).all()


# --- Single appraisal ---

@router.post("/start", response_model=AppraisalDetail, status_code=status.HTTP_201_CREATED)
def start_appraisal(
    data: StartAppraisalRequest,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    employee = current_user
    if data.employee_id is not None and data.employee_id != current_user.id:
        employee = db.get(Profile, data.employee_id)
        if not employee:
            raise HTTPException(status_code=404, detail="Employee not found")
    appraisal = AppraisalService(db, current_user).start(employee, data.cycle_id)
    return to_detail(load_appraisal(db, appraisal.id), current_user)


@router.get("/{appraisal_id}", response_model=AppraisalDetail)
def get_appraisal(
    appraisal_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    return to_detail(get_visible_appraisal(appraisal_id, db, current_user), current_user)


@router.put("/{appraisal_id}/employee-responses", response_model=AppraisalDetail)
def save_employee_responses(
    appraisal_id: int,
    data: EmployeeResponsesUpdate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    appraisal = get_visible_appraisal(appraisal_id, db, current_user)
    extras = data.model_dump(include={"emp_comments", "goals", "training_needs", "noteworthy"})
    AppraisalService(db, current_user).save_employee_responses(appraisal, data.answers, extras)
    return to_detail(appraisal, current_user)


@router.put("/{appraisal_id}/manager-responses", response_model=AppraisalDetail)
def save_manager_responses(
    appraisal_id: int,
    data: ManagerResponsesUpdate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_manager())
):
    appraisal = get_visible_appraisal(appraisal_id, db, current_user)
    AppraisalService(db, current_user).save_manager_responses(appraisal, data.answers, data.mgr_comments)
    return to_detail(appraisal, current_user)


@router.post("/{appraisal_id}/submit", response_model=AppraisalDetail)
def employee_submit(
    appraisal_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    appraisal = get_visible_appraisal(appraisal_id, db, current_user)
    AppraisalService(db, current_user).employee_submit(appraisal)
    schedule_pushes(background_tasks, db)
    return to_detail(appraisal, current_user)


@router.post("/{appraisal_id}/manager-submit", response_model=AppraisalDetail)
def manager_submit(
    appraisal_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_manager())
):
    appraisal = get_visible_appraisal(appraisal_id, db, current_user)
    AppraisalService(db, current_user).manager_submit(appraisal)
    schedule_pushes(background_tasks, db)
    return to_detail(appraisal, current_user)


@router.post("/{appraisal_id}/reopen", response_model=AppraisalDetail)
def reopen_appraisal(
    appraisal_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin())
):
    appraisal = load_appraisal(db, appraisal_id)
    AppraisalService(db, current_user).reopen(appraisal)
    return to_detail(appraisal, current_user)


@router.delete("/{appraisal_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_appraisal(
    appraisal_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin())
):
    appraisal = load_appraisal(db, appraisal_id)
    AppraisalService(db, current_user).delete(appraisal)
