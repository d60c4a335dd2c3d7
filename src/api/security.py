"""Session tokens and authentication dependencies."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from api.dependencies import get_user_repo
from config import JWT_ALGORITHM, JWT_EXPIRATION_DAYS, JWT_SECRET_KEY
from domain.model.user import User
from port.user_repository import UserRepository
from services.session_service import (
    SessionClaims,
    reconcile_session,
    require_active,
    require_admin,
)

logger = logging.getLogger(__name__)

if not JWT_SECRET_KEY:
    raise ValueError(
        "JWT_SECRET_KEY environment variable is required. "
        "Generate a secure key with: openssl rand -hex 32"
    )

security = HTTPBearer(auto_error=False)


def create_access_token(user: User) -> str:
    """Create a session token carrying the user's identity claims."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user.id,
        "email": user.email,
        "username": user.username,
        "role": user.role.value if user.role else None,
        "auth_method": user.auth_method.value,
        "external_id": user.external_id,
        "exp": now + timedelta(days=JWT_EXPIRATION_DAYS),
        "iat": now,
    }
    return jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> Optional[SessionClaims]:
    """Verify a session token. None if invalid or expired."""
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.debug(f"JWT verification failed: {e}")
        return None
    return SessionClaims(
        subject=payload.get("sub"),
        email=payload.get("email"),
        username=payload.get("username"),
        role=payload.get("role"),
        auth_method=payload.get("auth_method"),
        external_id=payload.get("external_id"),
    )


def get_session_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[SessionClaims]:
    """Claims of the bearer token (optional). None if absent or invalid."""
    if not credentials:
        return None
    return decode_token(credentials.credentials)


def get_current_user(
    claims: Optional[SessionClaims] = Depends(get_session_claims),
    repo: UserRepository = Depends(get_user_repo),
) -> User:
    """Live record behind the session. Raises 401/404 via domain errors."""
    return reconcile_session(claims, repo)


def get_active_user(user: User = Depends(get_current_user)) -> User:
    """Session user who is not banned."""
    return require_active(user)


def get_admin_user(
    claims: Optional[SessionClaims] = Depends(get_session_claims),
    repo: UserRepository = Depends(get_user_repo),
) -> User:
    return require_admin(claims, repo)
