from pydantic import BaseModel, EmailStr, ConfigDict, Field
from typing import Optional
from datetime import datetime
from appraisal_api.models.profile import UserRole


class ProfileBase(BaseModel):
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    position: Optional[str] = None
    role: UserRole = UserRole.STAFF
    department_id: Optional[int] = None
    line_manager_id: Optional[int] = None


class ProfileCreate(ProfileBase):
    password: str = Field(..., min_length=8)


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    position: Optional[str] = None
    role: Optional[UserRole] = None
    department_id: Optional[int] = None
    line_manager_id: Optional[int] = None
    is_active: Optional[bool] = None


class ProfileResponse(ProfileBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
