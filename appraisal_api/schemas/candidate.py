from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional
from datetime import datetime


class CandidateCreate(BaseModel):
    full_name: str = Field(..., min_length=1)
    email: EmailStr
    position: str = Field(..., min_length=1)
    experience_years: Optional[float] = Field(None, ge=0)
    resume_summary: Optional[str] = None


class CandidateReview(BaseModel):
    match_score: Optional[int] = Field(None, ge=0, le=100)
    notes: Optional[str] = None


class CandidateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    email: str
    position: str
    experience_years: Optional[float] = None
    resume_summary: Optional[str] = None
    match_score: Optional[int] = None
    status: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
