from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from appraisal_api.database import get_db
from appraisal_api.models.department import Department
from appraisal_api.models.profile import Profile, UserRole
from appraisal_api.routers.auth_deps import get_current_user, require_hr, require_manager
from appraisal_api.schemas.profile import ProfileCreate, ProfileResponse, ProfileUpdate
from appraisal_api.services import auth as auth_service
from appraisal_api.services.audit import AuditService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/profiles", tags=["Profiles"])


def _check_references(db: Session, department_id: Optional[int], line_manager_id: Optional[int]):
    if department_id is not None and db.get(Department, department_id) is None:
        raise HTTPException(status_code=404, detail="Department not found")
    if line_manager_id is not None and db.get(Profile, line_manager_id) is None:
        raise HTTPException(status_code=404, detail="Line manager not found")


@router.get("/", response_model=List[ProfileResponse])
def list_profiles(
    role: Optional[UserRole] = None,
    department_id: Optional[int] = None,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    query = db.query(Profile)
    if role:
        query = query.filter(Profile.role == role)
    if department_id:
        query = query.filter(Profile.department_id == department_id)
    if not include_inactive:
        query = query.filter(Profile.is_active == True)  # noqa: E712
    return query.order_by(Profile.last_name, Profile.first_name).all()


@router.get("/team", response_model=List[ProfileResponse])
def list_team(
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_manager())
):
    """Direct reports of the calling line manager."""
    return db.query(Profile).filter(
        Profile.line_manager_id == current_user.id,
        Profile.is_active == True  # noqa: E712
    ).order_by(Profile.last_name).all()


@router.get("/{profile_id}", response_model=ProfileResponse)
def get_profile(
    profile_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    profile = db.get(Profile, profile_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    if not (current_user.is_hr or current_user.id == profile.id or profile.line_manager_id == current_user.id):
        raise HTTPException(status_code=403, detail="Access denied")
    return profile


@router.post("/", response_model=ProfileResponse, status_code=status.HTTP_201_CREATED)
def create_profile(
    data: ProfileCreate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    if db.query(Profile).filter(Profile.email == data.email).first():
        raise HTTPException(status_code=400, detail="Email already registered")
    if data.role == UserRole.ADMIN and current_user.role != UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="Only admins can create admin profiles")
    _check_references(db, data.department_id, data.line_manager_id)

    profile = Profile(
        **data.model_dump(exclude={"password"}),
        hashed_password=auth_service.get_password_hash(data.password),
    )
    db.add(profile)
    db.flush()
    AuditService.log(db, "create_profile", "profile", profile.id, current_user.id, current_user.role,
                     {"email": profile.email, "role": profile.role})
    db.commit()
    db.refresh(profile)
    logger.info(f"Profile {profile.id} created by {current_user.email}")
    return profile


@router.patch("/{profile_id}", response_model=ProfileResponse)
def update_profile(
    profile_id: int,
    data: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_hr())
):
    profile = db.get(Profile, profile_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    changes = data.model_dump(exclude_unset=True)
    if changes.get("role") == UserRole.ADMIN and current_user.role != UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="Only admins can grant the admin role")
    if changes.get("line_manager_id") == profile.id:
        raise HTTPException(status_code=400, detail="A profile cannot be its own line manager")
    _check_references(db, changes.get("department_id"), changes.get("line_manager_id"))

    before = {k: getattr(profile, k) for k in changes}
    for key, value in changes.items():
        setattr(profile, key, value)
    AuditService.log(db, "update_profile", "profile", profile.id, current_user.id, current_user.role,
                     {"fields": sorted(changes)}, before_state=before, after_state=changes)
    db.commit()
    db.refresh(profile)
    return profile
