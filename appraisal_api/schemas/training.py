from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional
from datetime import datetime


class TrainingCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    content_type: str = Field("video", pattern="^(video|audio|document)$")
    content_url: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, ge=0)
    pass_mark: int = Field(70, ge=0, le=100)
    max_attempts: int = Field(3, ge=1)


class TrainingUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    content_url: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, ge=0)
    pass_mark: Optional[int] = Field(None, ge=0, le=100)
    max_attempts: Optional[int] = Field(None, ge=1)


class TrainingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    content_type: str
    content_url: Optional[str] = None
    duration_minutes: Optional[int] = None
    pass_mark: int
    max_attempts: int
    is_active: bool


class QuizQuestionCreate(BaseModel):
    question_text: str = Field(..., min_length=1)
    options: List[str] = []
    correct_answer: str
    points: int = Field(1, ge=1)


class QuizQuestionResponse(BaseModel):
    """Quiz question as shown to the learner; the answer is withheld."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    question_text: str
    options: Optional[List[str]] = None
    points: int


class TrainingRequestCreate(BaseModel):
    employee_id: Optional[int] = None
    justification: str = Field(..., min_length=1)
    recommended_training_type: Optional[str] = None


class TrainingRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    requested_by: int
    justification: str
    recommended_training_type: Optional[str] = None
    status: str
    processed_by: Optional[int] = None
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ApproveTrainingRequest(BaseModel):
    training_id: int


class AssignmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    training_id: int
    request_id: Optional[int] = None
    due_date: Optional[datetime] = None
    status: str


class QuizSubmission(BaseModel):
    answers: Dict[int, str]


class QuizAttemptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    assignment_id: int
    attempt_number: int
    score_percentage: int
    passed: bool
    completed_at: Optional[datetime] = None
