"""
aceops/core/security.py

Purpose: Authentication and authorization

- bcrypt password hashing (passlib)
- Signed JWT access and e-mail verification tokens (python-jose)
- FastAPI dependencies: current user, admin gate, super-admin gate
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from passlib.context import CryptContext

from aceops.core.config import settings
from aceops.core.exceptions import AuthenticationError, PermissionDeniedError
from aceops.core.logging import get_logger
from aceops.db.mongo import get_users_collection
from utils.constants import (
    ROLE_ADMIN,
    MSG_NOT_AUTHENTICATED,
    MSG_INVALID_TOKEN,
    MSG_ADMIN_ONLY,
    MSG_SUPER_ADMIN_ONLY,
)
from utils.validation_utils import optional_object_id

logger = get_logger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(password, hashed)


def create_token(claims: Dict[str, Any], expires_minutes: int) -> str:
    payload = dict(claims)
    payload["exp"] = datetime.utcnow() + timedelta(minutes=expires_minutes)
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def create_access_token(user: Dict[str, Any]) -> str:
    """Access token carrying the user id and role."""
    return create_token(
        {"sub": str(user["_id"]), "role": user.get("role")},
        settings.JWT_EXPIRES_MINUTES,
    )


def create_verification_token(user_id: Any) -> str:
    return create_token(
        {"sub": str(user_id), "type": "verify"},
        settings.VERIFICATION_TOKEN_MINUTES,
    )


def decode_token(token: str) -> Dict[str, Any]:
    """
    Decodes and verifies a JWT.

    Raises:
        AuthenticationError: On bad signature, expiry or malformed token
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise AuthenticationError(MSG_INVALID_TOKEN)


def is_admin(user: Dict[str, Any]) -> bool:
    return user.get("role") == ROLE_ADMIN or bool(user.get("isSuperAdmin"))


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> Dict[str, Any]:
    """
    Resolves the bearer token to a user document (password excluded).
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError(MSG_NOT_AUTHENTICATED)

    payload = decode_token(credentials.credentials)
    user_id = optional_object_id(payload.get("sub"))
    if user_id is None or payload.get("type") == "verify":
        raise AuthenticationError(MSG_INVALID_TOKEN)

    user = await get_users_collection().find_one({"_id": user_id}, {"password": 0})
    if not user:
        raise AuthenticationError("User not found")
    return user


async def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if not is_admin(user):
        logger.warning("Admin route refused", extra={"user_id": str(user["_id"])})
        raise PermissionDeniedError(MSG_ADMIN_ONLY)
    return user


async def require_super_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if not user.get("isSuperAdmin"):
        raise PermissionDeniedError(MSG_SUPER_ADMIN_ONLY)
    return user
