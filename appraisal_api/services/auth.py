"""
Password hashing and JWT helpers.
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt, JWTError, ExpiredSignatureError
from passlib.context import CryptContext

from appraisal_api.core.config import settings

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

ACCESS_TOKEN_EXPIRE_MINUTES = settings.access_token_expire_minutes
REFRESH_TOKEN_EXPIRE_DAYS = settings.refresh_token_expire_days


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        # Unknown or malformed hash
        return False


def _encode(data: Dict[str, Any], expires_delta: timedelta, token_type: str) -> str:
    to_encode = data.copy()
    to_encode["exp"] = datetime.now(timezone.utc) + expires_delta
    to_encode["type"] = token_type
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    return _encode(data, expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES), "access")


def create_refresh_token(data: Dict[str, Any]) -> str:
    # jti keeps two refresh tokens minted in the same second distinct
    payload = {**data, "jti": uuid.uuid4().hex}
    return _encode(payload, timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS), "refresh")


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode a JWT. Returns None when the token is invalid and
    {"error": "TOKEN_EXPIRED"} when it is well-formed but expired.
    """
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        return {"error": "TOKEN_EXPIRED"}
    except JWTError as e:
        logger.debug(f"Token decode failed: {e}")
        return None


def token_payload_for(profile) -> Dict[str, Any]:
    return {
        "sub": profile.email,
        "role": profile.role.value if hasattr(profile.role, "value") else profile.role,
        "user_id": profile.id,
    }
