from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session
from datetime import datetime, timedelta, timezone
import logging
from appraisal_api.core.config import settings
from appraisal_api.core.exceptions import AuthenticationError
from appraisal_api.core.limiter import limiter
from appraisal_api.database import get_db
from appraisal_api.models.profile import Profile, UserSession
from appraisal_api.routers.auth_deps import get_current_user
from appraisal_api.services import auth as auth_service
from appraisal_api.services.audit import AuditService
from appraisal_api.schemas.auth import LoginRequest, Token, RefreshRequest, PasswordChange
from appraisal_api.schemas.profile import ProfileResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)


def _issue_tokens(db: Session, profile: Profile) -> dict:
    access_token = auth_service.create_access_token(data=auth_service.token_payload_for(profile))
    refresh_token = auth_service.create_refresh_token(data={"sub": profile.email})
    db.add(UserSession(
        profile_id=profile.id,
        refresh_token=refresh_token,
        expires_at=datetime.now(timezone.utc) + timedelta(days=auth_service.REFRESH_TOKEN_EXPIRE_DAYS),
    ))
    return {"access_token": access_token, "refresh_token": refresh_token, "token_type": "bearer"}


@router.post("/login", response_model=Token)
@limiter.limit(settings.rate_limit_login)
def login(request: Request, login_data: LoginRequest, db: Session = Depends(get_db)):
    profile = db.query(Profile).filter(Profile.email == login_data.email).first()
    if not profile or not auth_service.verify_password(login_data.password, profile.hashed_password):
        AuditService.log(
            db,
            action="failed_login",
            entity_type="profile",
            entity_id=None,
            user_id=None,
            user_role=None,
            details={"email": login_data.email, "reason": "invalid_credentials"}
        )
        db.commit()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not profile.is_active:
        raise HTTPException(status_code=400, detail="User is inactive")

    tokens = _issue_tokens(db, profile)
    profile.last_login = datetime.now(timezone.utc)
    AuditService.log(
        db,
        action="login",
        entity_type="profile",
        entity_id=profile.id,
        user_id=profile.id,
        user_role=profile.role,
        details={"email": profile.email}
    )
    db.commit()

    return {
        **tokens,
        "user": {
            "id": profile.id,
            "email": profile.email,
            "role": profile.role.value,
            "full_name": profile.full_name,
        }
    }


@router.post("/refresh", response_model=Token)
def refresh_token(body: RefreshRequest, db: Session = Depends(get_db)):
    payload = auth_service.decode_access_token(body.refresh_token)
    if payload is None or payload.get("type") != "refresh":
        raise AuthenticationError("Invalid refresh token")

    db_session = db.query(UserSession).filter(
        UserSession.refresh_token == body.refresh_token,
        UserSession.is_revoked == False,  # noqa: E712
        UserSession.expires_at > datetime.now(timezone.utc)
    ).first()
    if not db_session:
        raise AuthenticationError("Session expired or revoked")

    profile = db_session.profile
    if not profile or not profile.is_active:
        raise AuthenticationError("User inactive or not found")

    # Rotation: revoke old, create new
    db_session.is_revoked = True
    tokens = _issue_tokens(db, profile)
    db.commit()
    return tokens


@router.post("/logout")
def logout(body: RefreshRequest, db: Session = Depends(get_db)):
    db_session = db.query(UserSession).filter(UserSession.refresh_token == body.refresh_token).first()
    if db_session:
        db_session.is_revoked = True
        db.commit()
    return {"message": "Successfully logged out"}


@router.get("/me", response_model=ProfileResponse)
def get_me(current_user: Profile = Depends(get_current_user)):
    return current_user


@router.post("/change-password")
def change_password(
    body: PasswordChange,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(get_current_user)
):
    if not auth_service.verify_password(body.current_password, current_user.hashed_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    current_user.hashed_password = auth_service.get_password_hash(body.new_password)
    # Force re-login everywhere else
    db.query(UserSession).filter(
        UserSession.profile_id == current_user.id,
        UserSession.is_revoked == False,  # noqa: E712
    ).update({"is_revoked": True})
    AuditService.log(db, "change_password", "profile", current_user.id, current_user.id, current_user.role, {})
    db.commit()
    return {"message": "Password updated successfully"}
