from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from pydantic import BaseModel, EmailStr, Field
import logging

from appraisal_api.database import get_db
from appraisal_api.models.appraisal import AppraisalSettings
from appraisal_api.models.profile import Profile, UserRole
from appraisal_api.services import auth as auth_service

router = APIRouter()
logger = logging.getLogger(__name__)


class InitializeRequest(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    admin_email: EmailStr
    password: str = Field(..., min_length=8)


@router.get("/status")
def get_setup_status(db: Session = Depends(get_db)):
    """Check if the system is already initialized."""
    initialized = db.query(Profile).filter(Profile.role == UserRole.ADMIN).first() is not None
    return {"initialized": initialized}


@router.post("/initialize", status_code=status.HTTP_201_CREATED)
def initialize_system(data: InitializeRequest, db: Session = Depends(get_db)):
    """
    Bootstrap the system: first admin profile and the appraisal settings row.
    Only runs while no admin exists.
    """
    if db.query(Profile).filter(Profile.role == UserRole.ADMIN).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="System already initialized. Initialization can only be performed once."
        )

    try:
        admin = Profile(
            email=data.admin_email,
            hashed_password=auth_service.get_password_hash(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            position="System Administrator",
            role=UserRole.ADMIN,
            is_active=True,
        )
        db.add(admin)
        if db.query(AppraisalSettings).first() is None:
            db.add(AppraisalSettings(submission_locked=False, manager_submission_locked=False))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"System initialization failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Initialization failed"
        )

    logger.info(f"System bootstrap complete (Admin: {data.admin_email})")
    return {
        "success": True,
        "message": "System initialized successfully",
        "admin_id": admin.id,
    }
