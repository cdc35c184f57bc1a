"""
Committee review: the final scoring stage run by HR and admins.
"""
from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from appraisal_api.core.config import settings
from appraisal_api.database import get_db
from appraisal_api.models.appraisal import Appraisal, AppraisalStatus
from appraisal_api.models.profile import Profile
from appraisal_api.routers.appraisals import to_detail
from appraisal_api.routers.auth_deps import require_hr
from appraisal_api.schemas.appraisal import (
    AppraisalDetail, AppraisalResponseItem, AppraisalSummary, CommitteeDecision, CommitteeReviewDetail, SectionGroup,
)
from appraisal_api.services.analytics_service import AnalyticsService, run_analytics_job
from appraisal_api.services.appraisal_service import AppraisalService, load_appraisal
from appraisal_api.services.notification_service import schedule_pushes
from appraisal_api.services.sections import group_by_section, is_rating_section, response_section_name

router = APIRouter(prefix="/committee", tags=["Committee"])


def schedule_analytics(background_tasks: BackgroundTasks, appraisal: Appraisal):
    if settings.enable_analytics:
        background_tasks.add_task(run_analytics_job, appraisal.id)


@router.get("/appraisals/{appraisal_id}", response_model=CommitteeReviewDetail)
def committee_review_detail(
    appraisal_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    """
    Everything the committee needs on one screen: responses grouped by
    section, the employee's earlier completed appraisals and the latest
    analytics for this cycle.
    """
    appraisal = load_appraisal(db, appraisal_id)
    grouped = group_by_section(appraisal.responses, response_section_name)
    sections = [
        SectionGroup(
            section_name=name,
            is_rating_section=is_rating_section(name),
            responses=[AppraisalResponseItem.model_validate(r) for r in responses],
        )
        for name, responses in grouped.items()
    ]

    history = (
        db.query(Appraisal)
        .filter(
            Appraisal.employee_id == appraisal.employee_id,
            Appraisal.id != appraisal.id,
            Appraisal.status == AppraisalStatus.COMPLETED.value,
        )
        .order_by(Appraisal.completed_at.desc())
        .all()
    )

    analytics = AnalyticsService(db).get_for(appraisal.employee_id, appraisal.cycle_id)
    return CommitteeReviewDetail(
        appraisal=to_detail(appraisal, current_user),
        employee_name=appraisal.employee.full_name,
        cycle_label=appraisal.cycle.label,
        sections=sections,
        history=[AppraisalSummary.model_validate(a) for a in history],
        analytics={
            "overall_score": analytics.overall_score,
            "performance_band": analytics.performance_band,
            "section_scores": analytics.section_scores,
        } if analytics else None,
    )


@router.post("/appraisals/{appraisal_id}/finalize", response_model=AppraisalDetail)
def committee_finalize(
    appraisal_id: int,
    decision: CommitteeDecision,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    appraisal = load_appraisal(db, appraisal_id)
    AppraisalService(db, current_user).committee_finalize(appraisal, decision.scores, decision.comments)
    schedule_pushes(background_tasks, db)
    schedule_analytics(background_tasks, appraisal)
    return to_detail(appraisal, current_user)


@router.post("/appraisals/{appraisal_id}/forward", response_model=AppraisalDetail)
def committee_forward(
    appraisal_id: int,
    decision: CommitteeDecision,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    """Hands the appraisal to HR for a final decision instead of completing it."""
    appraisal = load_appraisal(db, appraisal_id)
    AppraisalService(db, current_user).committee_forward(appraisal, decision.scores, decision.comments)
    schedule_pushes(background_tasks, db)
    return to_detail(appraisal, current_user)
