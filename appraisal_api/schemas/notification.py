from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, Optional
from datetime import datetime


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    message: str
    type: Optional[str] = None
    related_appraisal_id: Optional[int] = None
    related_employee_id: Optional[int] = None
    is_read: bool
    created_at: Optional[datetime] = None


class BroadcastRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=120)
    message: str = Field(..., min_length=1, max_length=1000)
    target: Literal["all", "staff", "managers"] = "all"


class BroadcastResponse(BaseModel):
    target: str
    recipients: Optional[int] = None
    push_enabled: bool
