from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional

from appraisal_api.core.security import sanitize_input
from appraisal_api.database import get_db
from appraisal_api.models.candidate import Candidate, CandidateStatus
from appraisal_api.models.profile import Profile
from appraisal_api.routers.auth_deps import require_hr
from appraisal_api.schemas.candidate import CandidateCreate, CandidateResponse, CandidateReview

router = APIRouter(prefix="/recruitment", tags=["Recruitment"])

# Terminal states have no outgoing moves
CANDIDATE_TRANSITIONS = {
    CandidateStatus.NEW: {CandidateStatus.REVIEWING, CandidateStatus.REJECTED},
    CandidateStatus.REVIEWING: {CandidateStatus.HIRED, CandidateStatus.REJECTED},
    CandidateStatus.HIRED: set(),
    CandidateStatus.REJECTED: set(),
}


def _candidate_or_404(db: Session, candidate_id: int) -> Candidate:
    candidate = db.get(Candidate, candidate_id)
    if not candidate:
        raise HTTPException(status_code=404, detail="Candidate not found")
    return candidate


def _move(db: Session, candidate: Candidate, target: CandidateStatus) -> Candidate:
    current = CandidateStatus(candidate.status)
    if target not in CANDIDATE_TRANSITIONS[current]:
        raise HTTPException(
            status_code=409,
            detail=f"Cannot move candidate from '{current.value}' to '{target.value}'"
        )
    candidate.status = target.value
    db.commit()
    db.refresh(candidate)
    return candidate


@router.get("/candidates", response_model=List[CandidateResponse])
def list_candidates(
    status_filter: Optional[CandidateStatus] = None,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    query = db.query(Candidate)
    if status_filter:
        query = query.filter(Candidate.status == status_filter.value)
    return query.order_by(Candidate.created_at.desc(), Candidate.id.desc()).all()


@router.post("/candidates", response_model=CandidateResponse, status_code=status.HTTP_201_CREATED)
def create_candidate(
    data: CandidateCreate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    payload = data.model_dump()
    payload["resume_summary"] = sanitize_input(payload["resume_summary"])
    candidate = Candidate(**payload, status=CandidateStatus.NEW.value)
    db.add(candidate)
    db.commit()
    db.refresh(candidate)
    return candidate


@router.post("/candidates/{candidate_id}/review", response_model=CandidateResponse)
def review_candidate(
    candidate_id: int,
    data: CandidateReview,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    candidate = _candidate_or_404(db, candidate_id)
    if candidate.status not in (CandidateStatus.NEW.value, CandidateStatus.REVIEWING.value):
        raise HTTPException(status_code=409, detail=f"Candidate is already {candidate.status}")
    if data.match_score is not None:
        candidate.match_score = data.match_score
    if data.notes is not None:
        candidate.notes = sanitize_input(data.notes)
    if candidate.status == CandidateStatus.REVIEWING.value:
        db.commit()
        db.refresh(candidate)
        return candidate
    return _move(db, candidate, CandidateStatus.REVIEWING)


@router.post("/candidates/{candidate_id}/hire", response_model=CandidateResponse)
def hire_candidate(
    candidate_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    return _move(db, _candidate_or_404(db, candidate_id), CandidateStatus.HIRED)


@router.post("/candidates/{candidate_id}/reject", response_model=CandidateResponse)
def reject_candidate(
    candidate_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    return _move(db, _candidate_or_404(db, candidate_id), CandidateStatus.REJECTED)
