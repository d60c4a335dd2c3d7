"""Auth service: email sign-in and Google sign-in.

Pure business logic with no HTTP dependencies.
Raises domain errors that route handlers map to HTTP status codes.
"""

import logging
import uuid
from datetime import datetime, timezone

from domain.model.errors import (
    AccountSuspendedError,
    AuthenticationError,
    DuplicateError,
)
from domain.model.user import TEMP_USERNAME_PREFIX, AuthMethod, User, new_user_id
from domain.model.user_update import UserUpdate
from port.identity_provider import IdentityProviderPort
from port.user_repository import UserRepository
from services.credentials import verify_password

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
GOOGLE_SIGN_IN_PROVIDER = "google.com"


def authenticate(repo: UserRepository, email: str, password: str) -> User:
    """Authenticate a user by email and password.

    Doesn't reveal whether the email exists.

    Raises:
        AuthenticationError: invalid credentials (deliberately vague)
        AccountSuspendedError: account is banned
    """
    user = repo.find_unique(email=email.strip().lower())
    if not user or not verify_password(password, user.password_hash):
        raise AuthenticationError(INVALID_CREDENTIALS)

    if user.banned:
        logger.info("Sign-in blocked for banned user", extra={"userId": user.id})
        raise AccountSuspendedError()

    now = datetime.now(timezone.utc)
    updated = repo.update_by_id(user.id, UserUpdate(set={'last_login_at': now, 'last_activity_at': now}))
    return updated or user


def google_sign_in(
    id_token: str,
    *,
    repo: UserRepository,
    identity_provider: IdentityProviderPort,
) -> User:
    """Sign in with a Google ID token.

    Known users (by external id, then email) get Google linked to their
    record. Unknown users get a `temp_` placeholder that signup completes.

    Raises:
        AuthenticationError: token rejected or not a verified Google identity,
            or email owned by another Google account
        AccountSuspendedError: account is banned
    """
    identity = identity_provider.verify_id_token(id_token)
    if identity is None:
        raise AuthenticationError("Invalid Google credentials")
    if identity.provider != GOOGLE_SIGN_IN_PROVIDER:
        logger.warning("ID token not issued for Google sign-in", extra={"provider": identity.provider})
        raise AuthenticationError("Invalid Google credentials")
    if not identity.email:
        raise AuthenticationError("Google account has no email address")
    if not identity.email_verified:
        raise AuthenticationError("Google account email is not verified")

    email = identity.email.strip().lower()
    user = repo.find_unique(external_id=identity.external_id) or repo.find_unique(email=email)
    now = datetime.now(timezone.utc)

    if user is None:
        return _create_placeholder(identity.external_id, email, identity.name, now, repo)

    if user.banned:
        logger.info("Google sign-in blocked for banned user", extra={"userId": user.id})
        raise AccountSuspendedError()

    if user.external_id and user.external_id != identity.external_id:
        logger.warning("Email linked to a different Google account", extra={"userId": user.id})
        raise AuthenticationError("This email is linked to a different Google account")

    providers = list(dict.fromkeys([*user.providers, AuthMethod.GOOGLE.value]))
    updated = repo.update_by_id(user.id, UserUpdate(set={
        'external_id': identity.external_id,
        'email_verified': True,
        'providers': providers,
        'last_login_at': now,
        'last_activity_at': now,
    }))
    logger.info("Google sign-in", extra={"userId": user.id})
    return updated or user


def _create_placeholder(
    external_id: str,
    email: str,
    name: str | None,
    now: datetime,
    repo: UserRepository,
) -> User:
    placeholder = User(
        id=new_user_id(),
        name=name or email.split('@')[0],
        email=email,
        username=f"{TEMP_USERNAME_PREFIX}{uuid.uuid4().hex[:12]}",
        auth_method=AuthMethod.GOOGLE,
        created_at=now,
        updated_at=now,
        external_id=external_id,
        providers=[AuthMethod.GOOGLE.value],
        is_verified=True,
        email_verified=True,
        last_login_at=now,
        last_activity_at=now,
    )
    try:
        created = repo.create(placeholder)
    except DuplicateError:
        # Another first sign-in for the same account won the race
        existing = repo.find_unique(external_id=external_id)
        if existing is None:
            raise
        return existing
    logger.info("Google placeholder created", extra={"userId": created.id})
    return created
