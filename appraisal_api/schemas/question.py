from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime
from appraisal_api.models.question import ScoringType


class SectionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    weight: float = Field(1.0, ge=0)
    max_score: int = Field(5, ge=1)
    sort_order: int = 0
    scoring_type: ScoringType = ScoringType.RATING


class SectionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    weight: Optional[float] = Field(None, ge=0)
    max_score: Optional[int] = Field(None, ge=1)
    sort_order: Optional[int] = None
    scoring_type: Optional[ScoringType] = None
    is_active: Optional[bool] = None


class SectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    weight: float
    max_score: int
    sort_order: int
    scoring_type: str
    is_active: bool


class QuestionCreate(BaseModel):
    section_id: Optional[int] = None
    cycle_id: Optional[int] = None
    question_text: str = Field(..., min_length=1)
    question_type: ScoringType = ScoringType.RATING
    multiple_choice_options: List[str] = []
    weight: float = Field(1.0, gt=0)
    is_required: bool = True
    sort_order: int = 0
    applies_to_roles: Optional[List[str]] = None
    applies_to_departments: Optional[List[int]] = None


class QuestionUpdate(BaseModel):
    section_id: Optional[int] = None
    question_text: Optional[str] = Field(None, min_length=1)
    question_type: Optional[ScoringType] = None
    multiple_choice_options: Optional[List[str]] = None
    weight: Optional[float] = Field(None, gt=0)
    is_required: Optional[bool] = None
    sort_order: Optional[int] = None
    applies_to_roles: Optional[List[str]] = None
    applies_to_departments: Optional[List[int]] = None
    is_active: Optional[bool] = None


class QuestionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    section_id: Optional[int] = None
    cycle_id: Optional[int] = None
    question_text: str
    question_type: str
    multiple_choice_options: Optional[List[str]] = None
    weight: float
    is_required: bool
    sort_order: Optional[int] = 0
    applies_to_roles: Optional[List[str]] = None
    applies_to_departments: Optional[List[int]] = None
    is_active: bool


class QuestionAssignmentRequest(BaseModel):
    employee_id: int
    cycle_id: int
    question_ids: List[int] = Field(..., min_length=1)


class QuestionAssignmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    question_id: int
    cycle_id: int
    assigned_by: Optional[int] = None
    is_active: bool
    assigned_at: Optional[datetime] = None
