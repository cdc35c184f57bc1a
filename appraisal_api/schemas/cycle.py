from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional
from datetime import date, datetime


class CycleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    quarter: int = Field(..., ge=1, le=4)
    year: int = Field(..., ge=2000, le=2100)
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class CycleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    quarter: int
    year: int
    start_date: date
    end_date: date
    status: str
    label: str
    created_at: Optional[datetime] = None
