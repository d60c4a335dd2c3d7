"""Signup service: multi-method account creation and duplicate reconciliation.

Pure business logic with no HTTP dependencies.
Flow: validate → fake-account check → method preconditions → conflict
lookup (placeholder upgrade or 409) → create → best-effort welcome email.

The store's unique indexes are the authority on duplicates; the conflict
lookup only exists to name the colliding field up front.
"""

import logging
import random
import re
from datetime import datetime, timezone

from domain.model.errors import (
    AuthenticationError,
    DuplicateError,
    ExternalServiceError,
    ValidationError,
)
from domain.model.user import (
    TEMP_USERNAME_PREFIX,
    AuthMethod,
    User,
    new_user_id,
    welcome_notification,
)
from domain.model.user_update import UserUpdate
from port.identity_provider import IdentityProviderPort
from port.mailer import MailerPort
from port.user_repository import UserRepository
from services.credentials import hash_password
from services.session_service import SessionClaims
from services.validation import (
    USERNAME_MAX_LENGTH,
    SignupData,
    check_phone,
    check_username,
    detect_fake_account,
    normalize_phone,
    username_format_error,
    validate_signup,
)

logger = logging.getLogger(__name__)

FAKE_ACCOUNT_MESSAGE = "Unable to create account. Please contact support if you believe this is an error."
MAX_SUGGESTIONS = 5

# Conflicting fields are reported in this order
CONFLICT_PRECEDENCE = ('email', 'username', 'phone', 'external_id')


def signup(
    data: dict,
    *,
    repo: UserRepository,
    mailer: MailerPort,
    identity_provider: IdentityProviderPort,
    session: SessionClaims | None = None,
    production: bool = False,
) -> User:
    """Create an account, or complete a Google placeholder.

    Returns the created or upgraded User.

    Raises:
        ValidationError: field errors, flagged signup, or failed phone check
        AuthenticationError: Google signup without a matching session
        DuplicateError: identity field already registered
    """
    signup_data = validate_signup(data, production=production)

    report = detect_fake_account(signup_data)
    if report.is_suspicious:
        logger.warning("Signup rejected by fake-account check", extra={
            "indicators": report.indicators,
            "authMethod": signup_data.auth_method.value,
        })
        raise ValidationError(FAKE_ACCOUNT_MESSAGE)

    external_id = _check_method_preconditions(signup_data, session, identity_provider)

    conflicts = repo.find_conflicts(
        email=signup_data.email,
        username=signup_data.username,
        phone=signup_data.phone,
        external_id=external_id,
    )

    placeholder = None
    if signup_data.auth_method == AuthMethod.GOOGLE and external_id:
        placeholder = next(
            (u for u in conflicts if u.is_placeholder and u.external_id == external_id),
            None,
        )
    others = [u for u in conflicts if placeholder is None or u.id != placeholder.id]
    if others:
        field = _conflict_field(others, signup_data, external_id)
        logger.info("Signup rejected: duplicate", extra={"field": field})
        raise DuplicateError(field)

    if placeholder is not None:
        user = _upgrade_placeholder(placeholder, signup_data, repo)
    else:
        user = _create_user(signup_data, external_id, repo)

    _send_welcome(mailer, user)
    return user


def _check_method_preconditions(
    data: SignupData,
    session: SessionClaims | None,
    identity_provider: IdentityProviderPort,
) -> str | None:
    """Return the external identity id to link, if any."""
    if data.auth_method == AuthMethod.GOOGLE:
        if session is None or not session.email:
            raise AuthenticationError("Please sign in with Google to continue")
        if session.email.strip().lower() != data.email:
            logger.warning("Google signup email does not match session")
            raise AuthenticationError("Email does not match your Google account")
        if data.external_id and session.external_id and data.external_id != session.external_id:
            raise AuthenticationError("Google account does not match your session")
        return data.external_id or session.external_id

    if data.auth_method == AuthMethod.PHONE:
        if not data.external_id:
            raise ValidationError(
                "Phone verification is required",
                errors={'external_id': "Phone verification is required"},
            )
        identity = identity_provider.get_identity(data.external_id)
        if identity is None:
            raise ValidationError("Invalid verification session")
        if normalize_phone(identity.phone_number) != data.phone:
            raise ValidationError("Phone number mismatch")
        return data.external_id

    return None


def _conflict_field(users: list[User], data: SignupData, external_id: str | None) -> str:
    values = {
        'email': data.email,
        'username': data.username,
        'phone': data.phone,
        'external_id': external_id,
    }
    for field in CONFLICT_PRECEDENCE:
        value = values[field]
        if value and any(getattr(u, field) == value for u in users):
            return field
    return 'email'


def _create_user(data: SignupData, external_id: str | None, repo: UserRepository) -> User:
    now = datetime.now(timezone.utc)
    is_google = data.auth_method == AuthMethod.GOOGLE
    user = User(
        id=new_user_id(),
        name=data.name,
        email=data.email,
        username=data.username,
        auth_method=data.auth_method,
        created_at=now,
        updated_at=now,
        role=data.role,
        phone=data.phone,
        external_id=external_id,
        password_hash=hash_password(data.password) if data.auth_method == AuthMethod.EMAIL else None,
        providers=[data.auth_method.value],
        location=data.location,
        skills=data.skills,
        is_verified=is_google,
        email_verified=is_google,
        phone_verified=data.auth_method == AuthMethod.PHONE,
        profile_completed_at=now,
        last_activity_at=now,
        notifications=[welcome_notification(data.name, data.role)],
    )
    created = repo.create(user)
    logger.info("User signed up", extra={"userId": created.id, "authMethod": data.auth_method.value})
    return created


def _upgrade_placeholder(placeholder: User, data: SignupData, repo: UserRepository) -> User:
    """Complete a Google placeholder in one guarded update."""
    now = datetime.now(timezone.utc)
    providers = list(dict.fromkeys([*placeholder.providers, AuthMethod.GOOGLE.value]))
    update = UserUpdate(
        set={
            'name': data.name,
            'username': data.username,
            'phone': data.phone,
            'role': data.role,
            'location': data.location,
            'skills': data.skills,
            'providers': providers,
            'is_verified': True,
            'email_verified': True,
            'profile_completed_at': now,
            'last_activity_at': now,
        },
        push_notification=welcome_notification(data.name, data.role),
    )
    upgraded = repo.update_by_id(
        placeholder.id,
        update,
        expected={'username': {'$regex': f'^{TEMP_USERNAME_PREFIX}'}},
    )
    if upgraded is None:
        # Completed concurrently by another request
        raise DuplicateError('email')
    logger.info("Google placeholder completed", extra={"userId": upgraded.id})
    return upgraded


def _send_welcome(mailer: MailerPort, user: User) -> None:
    try:
        mailer.send_welcome(user)
    except ExternalServiceError as e:
        logger.warning("Welcome email failed", extra={"userId": user.id, "error": e.message})


# ── availability ─────────────────────────────────────────


def username_availability(repo: UserRepository, raw: str | None) -> tuple[bool, str]:
    """Return (available, message).

    Raises ValidationError when the username is structurally invalid.
    """
    username = (raw or '').strip().lower()
    error = username_format_error(username)
    if error:
        raise ValidationError(error, errors={'username': error})

    _, error = check_username(username)
    if error:
        return False, error
    if repo.username_exists(username):
        return False, "Username is already taken"
    return True, "Username is available"


def suggest_usernames(repo: UserRepository, base: str | None, limit: int = MAX_SUGGESTIONS) -> list[str]:
    """Up to `limit` valid, unused usernames derived from `base`."""
    stem = re.sub(r'[^a-z0-9_]', '', (base or '').strip().lower())[:USERNAME_MAX_LENGTH - 4]
    if len(stem) < 3:
        return []

    rng = random.Random()
    candidates = [stem, f"{stem}_{datetime.now(timezone.utc).year}"]
    candidates += [f"{stem}{n}" for n in range(1, 10)]
    candidates += [f"{stem}_{rng.randint(100, 999)}" for _ in range(5)]

    suggestions = []
    for candidate in candidates:
        if len(suggestions) >= limit:
            break
        if candidate in suggestions:
            continue
        _, error = check_username(candidate)
        if error or repo.username_exists(candidate):
            continue
        suggestions.append(candidate)
    return suggestions


def phone_availability(repo: UserRepository, raw: str | None) -> tuple[bool, str]:
    """Return (available, canonical phone).

    Raises ValidationError when the number is invalid.
    """
    phone, error = check_phone(raw)
    if error:
        raise ValidationError(error, errors={'phone': error})
    return repo.find_unique(phone=phone) is None, phone
