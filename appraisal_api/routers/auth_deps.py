"""
RBAC dependencies.
Role-based access control for FastAPI endpoints.
"""
import logging
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from typing import List, Callable
from appraisal_api.database import get_db
from appraisal_api.models.profile import Profile, UserRole
from appraisal_api.services import auth as auth_service

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> Profile:
    """
    Extracts and validates the current profile from the JWT token.
    """
    payload = auth_service.decode_access_token(token)

    if payload is None:
        logger.warning("Authentication failed: Invalid token")
        raise _unauthorized("Could not validate credentials")

    if payload.get("error") == "TOKEN_EXPIRED":
        logger.info("Authentication failed: Token expired")
        raise _unauthorized("TOKEN_EXPIRED")

    if payload.get("type") != "access":
        logger.warning("Authentication failed: Invalid token type")
        raise _unauthorized("Invalid token type")

    email = payload.get("sub")
    if email is None:
        logger.warning("Authentication failed: Missing subject (email) in token")
        raise _unauthorized("Missing subject in token")

    profile = db.query(Profile).filter(Profile.email == email).first()
    if profile is None:
        logger.warning(f"Authentication failed: Profile {email} not found in database")
        raise _unauthorized("User not found")
    if not profile.is_active:
        logger.warning(f"Authentication failed: Profile {email} is inactive")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is inactive")
    return profile


def require_role(allowed_roles: List[UserRole]) -> Callable:
    """
    Dependency factory that checks if the profile has one of the allowed roles.

    Usage:
        @router.get("/admin-only")
        def admin_endpoint(user: Profile = Depends(require_role([UserRole.ADMIN]))):
            ...
    """
    def role_checker(current_user: Profile = Depends(get_current_user)):
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {[r.value for r in allowed_roles]}"
            )
        return current_user
    return role_checker


def require_hr():
    """HR staff and admins; they also form the appraisal committee."""
    return require_role([UserRole.HR, UserRole.ADMIN])


def require_manager():
    return require_role([UserRole.MANAGER, UserRole.HR, UserRole.ADMIN])


def require_admin():
    return require_role([UserRole.ADMIN])
