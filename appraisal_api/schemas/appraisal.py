from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional
from datetime import datetime


class StartAppraisalRequest(BaseModel):
    cycle_id: int
    employee_id: Optional[int] = None  # HR may start on someone's behalf


class ResponseAnswer(BaseModel):
    question_id: int
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = None


class EmployeeResponsesUpdate(BaseModel):
    answers: List[ResponseAnswer] = []
    emp_comments: Optional[str] = None
    goals: Optional[str] = None
    training_needs: Optional[str] = None
    noteworthy: Optional[str] = None


class ManagerResponsesUpdate(BaseModel):
    answers: List[ResponseAnswer] = []
    mgr_comments: Optional[str] = None


class CommitteeScore(BaseModel):
    response_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None


class CommitteeDecision(BaseModel):
    scores: List[CommitteeScore] = []
    comments: Optional[str] = None


class QuestionBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    section_id: Optional[int] = None
    question_text: str
    question_type: str
    multiple_choice_options: Optional[List[str]] = None
    weight: float
    is_required: bool


class AppraisalResponseItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    question_id: int
    emp_rating: Optional[int] = None
    emp_comment: Optional[str] = None
    mgr_rating: Optional[int] = None
    mgr_comment: Optional[str] = None
    committee_rating: Optional[int] = None
    committee_comment: Optional[str] = None
    question: Optional[QuestionBrief] = None


class AppraisalSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    cycle_id: int
    manager_id: Optional[int] = None
    status: str
    overall_score: Optional[float] = None
    performance_band: Optional[str] = None
    employee_submitted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class AppraisalDetail(AppraisalSummary):
    emp_comments: Optional[str] = None
    mgr_comments: Optional[str] = None
    committee_comments: Optional[str] = None
    goals: Optional[str] = None
    training_needs: Optional[str] = None
    noteworthy: Optional[str] = None
    manager_reviewed_at: Optional[datetime] = None
    committee_reviewed_at: Optional[datetime] = None
    hr_finalized_at: Optional[datetime] = None
    responses: List[AppraisalResponseItem] = []
    available_actions: List[str] = []


class SectionGroup(BaseModel):
    section_name: str
    is_rating_section: bool
    responses: List[AppraisalResponseItem]


class CommitteeReviewDetail(BaseModel):
    appraisal: AppraisalDetail
    employee_name: str
    cycle_label: str
    sections: List[SectionGroup]
    history: List[AppraisalSummary]
    analytics: Optional[Dict[str, Any]] = None


class SubmissionLocks(BaseModel):
    submission_locked: Optional[bool] = None
    manager_submission_locked: Optional[bool] = None


class SubmissionLocksResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    submission_locked: bool
    manager_submission_locked: bool
    locked_by: Optional[int] = None
    locked_at: Optional[datetime] = None


AppraisalDetail.model_rebuild()
CommitteeReviewDetail.model_rebuild()
