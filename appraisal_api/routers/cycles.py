from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from appraisal_api.database import get_db
from appraisal_api.models.appraisal import Appraisal, AppraisalStatus
from appraisal_api.models.appraisal_cycle import AppraisalCycle, CycleStatus
from appraisal_api.models.performance_analytics import PerformanceAnalytics
from appraisal_api.models.profile import Profile
from appraisal_api.models.question import EmployeeQuestionAssignment
from appraisal_api.routers.auth_deps import get_current_user, require_hr
from appraisal_api.schemas.cycle import CycleCreate, CycleResponse
from appraisal_api.services.audit import AuditService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cycles", tags=["Appraisal Cycles"])


def _get_or_404(db: Session, cycle_id: int) -> AppraisalCycle:
    cycle = db.get(AppraisalCycle, cycle_id)
    if not cycle:
        raise HTTPException(status_code=404, detail="Appraisal cycle not found")
    return cycle


@router.get("/", response_model=List[CycleResponse])
def list_cycles(
    status_filter: Optional[CycleStatus] = None,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    query = db.query(AppraisalCycle)
    if status_filter:
        query = query.filter(AppraisalCycle.status == status_filter.value)
    return query.order_by(AppraisalCycle.year.desc(), AppraisalCycle.quarter.desc()).all()


@router.get("/active", response_model=Optional[CycleResponse])
def get_active_cycle(
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    return db.query(AppraisalCycle).filter(
        AppraisalCycle.status == CycleStatus.ACTIVE.value
    ).order_by(AppraisalCycle.start_date.desc()).first()


@router.post("/", response_model=CycleResponse, status_code=status.HTTP_201_CREATED)
def create_cycle(
    data: CycleCreate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    existing = db.query(AppraisalCycle).filter(
        AppraisalCycle.year == data.year,
        AppraisalCycle.quarter == data.quarter
    ).first()
    if existing:
        raise HTTPException(status_code=400, detail=f"A cycle for Q{data.quarter} {data.year} already exists")

    cycle = AppraisalCycle(**data.model_dump(), status=CycleStatus.DRAFT.value, created_by=current_user.id)
    db.add(cycle)
    db.flush()
    AuditService.log(db, "create_cycle", "appraisal_cycle", cycle.id, current_user.id, current_user.role,
                     {"label": cycle.label})
    db.commit()
    db.refresh(cycle)
    return cycle


def _set_status(db: Session, cycle: AppraisalCycle, new_status: CycleStatus, actor: Profile) -> AppraisalCycle:
    before = cycle.status
    cycle.status = new_status.value
    AuditService.log(db, f"cycle_{new_status.value}", "appraisal_cycle", cycle.id, actor.id, actor.role,
                     {}, before_state={"status": before}, after_state={"status": cycle.status})
    db.commit()
    db.refresh(cycle)
    logger.info(f"Cycle {cycle.id} moved {before} -> {cycle.status}")
    return cycle


@router.post("/{cycle_id}/activate", response_model=CycleResponse)
def activate_cycle(
    cycle_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    cycle = _get_or_404(db, cycle_id)
    if cycle.status != CycleStatus.DRAFT.value:
        raise HTTPException(status_code=400, detail=f"Only draft cycles can be activated (current: {cycle.status})")
    return _set_status(db, cycle, CycleStatus.ACTIVE, current_user)


@router.post("/{cycle_id}/complete", response_model=CycleResponse)
def complete_cycle(
    cycle_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    """Closes the cycle. Appraisals still in progress are left as they are."""
    cycle = _get_or_404(db, cycle_id)
    if cycle.status != CycleStatus.ACTIVE.value:
        raise HTTPException(status_code=400, detail=f"Only active cycles can be completed (current: {cycle.status})")
    return _set_status(db, cycle, CycleStatus.COMPLETED, current_user)


@router.delete("/{cycle_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_cycle(
    cycle_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    cycle = _get_or_404(db, cycle_id)
    completed = db.query(Appraisal).filter(
        Appraisal.cycle_id == cycle.id,
        Appraisal.status == AppraisalStatus.COMPLETED.value
    ).count()
    if completed:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot delete a cycle with {completed} completed appraisal(s)"
        )
    AuditService.log(db, "delete_cycle", "appraisal_cycle", cycle.id, current_user.id, current_user.role,
                     {"label": cycle.label, "appraisals": len(cycle.appraisals)})
    # Rows keyed by cycle that the ORM cascade does not reach
    db.query(PerformanceAnalytics).filter(PerformanceAnalytics.cycle_id == cycle.id).delete(synchronize_session=False)
    db.query(EmployeeQuestionAssignment).filter(
        EmployeeQuestionAssignment.cycle_id == cycle.id
    ).delete(synchronize_session=False)
    db.delete(cycle)
    db.commit()
