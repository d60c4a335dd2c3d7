"""Session reconciliation.

A session token only names a subject; every authenticated request re-reads
the live record so bans, role changes and profile completion take effect
immediately.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from domain.model.errors import (
    AccountSuspendedError,
    InvalidSessionError,
    NotFoundError,
    PermissionDeniedError,
)
from domain.model.user import TEMP_USERNAME_PREFIX, User, is_valid_user_id
from domain.model.user_update import UserUpdate
from port.user_repository import UserRepository

logger = logging.getLogger(__name__)

ONBOARDING_MESSAGE = "Please complete your profile to continue"


@dataclass(frozen=True)
class SessionClaims:
    """Claims carried by a session token."""
    subject: str | None
    email: str | None = None
    username: str | None = None
    role: str | None = None
    auth_method: str | None = None
    external_id: str | None = None


def reconcile_session(claims: SessionClaims | None, repo: UserRepository) -> User:
    """Resolve session claims to the live user record.

    Raises:
        InvalidSessionError: no subject, malformed subject, or a placeholder
            account (needs_onboarding=True)
        NotFoundError: the subject no longer exists
    """
    if claims is None or not claims.subject:
        raise InvalidSessionError("No active session found")

    if claims.subject.startswith(TEMP_USERNAME_PREFIX):
        raise InvalidSessionError(ONBOARDING_MESSAGE, needs_onboarding=True)

    if not is_valid_user_id(claims.subject):
        logger.warning("Malformed session subject")
        raise InvalidSessionError("Invalid session")

    user = repo.get_by_id(claims.subject)
    if user is None:
        raise NotFoundError("User not found")

    if user.is_placeholder:
        raise InvalidSessionError(ONBOARDING_MESSAGE, needs_onboarding=True)

    return user


def require_active(user: User) -> User:
    """Block banned accounts from account actions."""
    if user.banned:
        raise AccountSuspendedError("Account suspended")
    return user


def require_admin(claims: SessionClaims | None, repo: UserRepository) -> User:
    """The actor must reconcile to a live, unbanned admin record."""
    try:
        actor = reconcile_session(claims, repo)
    except NotFoundError:
        raise PermissionDeniedError("Admin access required") from None
    if not actor.is_admin or actor.banned:
        raise PermissionDeniedError("Admin access required")
    return actor


def touch_activity(user: User, repo: UserRepository) -> User:
    """Record activity on session refresh."""
    updated = repo.update_by_id(
        user.id,
        UserUpdate(set={'last_activity_at': datetime.now(timezone.utc)}),
    )
    return updated or user
