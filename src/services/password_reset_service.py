"""Password reset and password change.

Lifecycle: idle → requested → token issued → consumed | expired | exhausted.

Only the SHA-256 hash of a reset token is stored, alongside an absolute
expiry and an attempt counter. Every verification attempt against a located
record counts, successful or not; the record stops being a candidate once
the counter reaches the cap.

Signed-in accounts change their password with change_password(), which
checks the current password and withdraws any outstanding reset token.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from urllib.parse import quote

from domain.model.errors import (
    AccountSuspendedError,
    DomainError,
    ExternalServiceError,
    InvalidOrExpiredTokenError,
    ValidationError,
)
from domain.model.user import AuthMethod, User, is_valid_user_id
from domain.model.user_update import RESET_FIELDS, UserUpdate
from port.mailer import MailerPort
from port.user_repository import UserRepository
from services.credentials import (
    generate_reset_token,
    hash_password,
    hash_reset_token,
    reset_token_selector,
    verify_password,
    verify_reset_token,
)
from services.validation import check_email, password_error

logger = logging.getLogger(__name__)

GENERIC_REQUEST_MESSAGE = "If an account with this email exists, you will receive a password reset link shortly."
GOOGLE_ACCOUNT_MESSAGE = (
    'This account uses Google Sign-In. Please use the "Sign in with Google" option instead.'
)
RESET_SUCCESS_MESSAGE = "Password reset successful! You can now sign in with your new password."
SEND_FAILED_MESSAGE = "Failed to send reset email. Please try again later."
PASSWORD_CHANGED_MESSAGE = "Password changed successfully"
NO_PASSWORD_MESSAGE = "No password set for this account"
WRONG_PASSWORD_MESSAGE = "Current password is incorrect"
REUSED_PASSWORD_MESSAGE = "New password must be different from the current password"


@dataclass(frozen=True)
class ResetRequestOutcome:
    success: bool
    message: str
    issued: bool = False


def request_reset(
    email: str,
    *,
    repo: UserRepository,
    mailer: MailerPort,
    base_url: str,
    ttl_minutes: int,
    now: datetime | None = None,
) -> ResetRequestOutcome:
    """Issue a reset token for an email account.

    Unknown addresses and accounts without a password get the same generic
    outcome as a real issuance. Google accounts get a pointer to Google
    sign-in instead.

    Raises:
        ValidationError: malformed email
        AccountSuspendedError: account is banned
        DomainError: the email could not be sent; the token is withdrawn
    """
    email, error = check_email(email)
    if error:
        raise ValidationError(error, errors={'email': error})

    generic = ResetRequestOutcome(success=True, message=GENERIC_REQUEST_MESSAGE)

    user = repo.find_unique(email=email)
    if user is None:
        logger.info("Password reset requested for unknown email")
        return generic

    if user.banned:
        logger.info("Password reset blocked for banned user", extra={"userId": user.id})
        raise AccountSuspendedError()

    if user.auth_method != AuthMethod.EMAIL or not user.has_password:
        if user.auth_method == AuthMethod.GOOGLE or AuthMethod.GOOGLE.value in user.providers:
            return ResetRequestOutcome(success=False, message=GOOGLE_ACCOUNT_MESSAGE)
        return generic

    now = now or datetime.now(timezone.utc)
    token = generate_reset_token(user.id)
    issued = repo.update_by_id(user.id, UserUpdate(set={
        'password_reset_token_hash': hash_reset_token(token),
        'password_reset_expiry': now + timedelta(minutes=ttl_minutes),
        'password_reset_attempts': 0,
    }))
    if issued is None:
        return generic

    reset_url = f"{base_url}/auth/reset-password?token={quote(token, safe='')}"
    try:
        mailer.send_password_reset(user, reset_url)
    except ExternalServiceError as e:
        logger.error("Reset email failed, withdrawing token", extra={"userId": user.id, "error": e.message})
        repo.update_by_id(user.id, UserUpdate(unset=list(RESET_FIELDS)))
        raise DomainError(SEND_FAILED_MESSAGE) from e

    logger.info("Password reset token issued", extra={"userId": user.id})
    return ResetRequestOutcome(success=True, message=GENERIC_REQUEST_MESSAGE, issued=True)


def complete_reset(
    token: str,
    password: str,
    confirm_password: str,
    *,
    repo: UserRepository,
    mailer: MailerPort,
    production: bool,
    max_attempts: int,
    now: datetime | None = None,
) -> User:
    """Replace the password of the account holding `token`.

    Raises:
        ValidationError: missing token, weak password, confirmation mismatch
        InvalidOrExpiredTokenError: unknown, expired, exhausted or replayed token
        AccountSuspendedError: account is banned (nothing is changed)
    """
    errors = {}
    if not token:
        errors['token'] = "Reset token is required"
    error = password_error(password, production=production)
    if error:
        errors['password'] = error
    if password != confirm_password:
        errors['confirm_password'] = "Passwords do not match"
    if errors:
        raise ValidationError(next(iter(errors.values())), errors=errors)

    now = now or datetime.now(timezone.utc)
    selector = reset_token_selector(token)
    if selector is not None and not is_valid_user_id(selector):
        raise InvalidOrExpiredTokenError()

    candidates = repo.find_reset_candidates(now, max_attempts, user_id=selector)
    match = next(
        (u for u in candidates if verify_reset_token(token, u.password_reset_token_hash)),
        None,
    )

    if match is None:
        if selector is not None and candidates:
            located = candidates[0]
            if located.banned:
                raise AccountSuspendedError()
            counted = repo.increment_reset_attempts(located.id, now, max_attempts)
            logger.info("Password reset attempt failed", extra={
                "userId": located.id,
                "attempts": counted.password_reset_attempts if counted else max_attempts,
            })
        raise InvalidOrExpiredTokenError()

    if match.banned:
        logger.info("Password reset blocked for banned user", extra={"userId": match.id})
        raise AccountSuspendedError()

    if repo.increment_reset_attempts(match.id, now, max_attempts) is None:
        raise InvalidOrExpiredTokenError()

    updated = repo.update_by_id(
        match.id,
        UserUpdate(
            set={'password_hash': hash_password(password), 'last_activity_at': now},
            unset=list(RESET_FIELDS),
        ),
        expected={'password_reset_token_hash': match.password_reset_token_hash},
    )
    if updated is None:
        # Consumed by a concurrent request
        raise InvalidOrExpiredTokenError()

    logger.info("Password reset completed", extra={"userId": updated.id})

    try:
        mailer.send_password_changed(updated)
    except ExternalServiceError as e:
        logger.warning("Password change email failed", extra={"userId": updated.id, "error": e.message})

    return updated


def change_password(
    user: User,
    current_password: str | None,
    new_password: str | None,
    confirm_password: str | None = None,
    *,
    repo: UserRepository,
    mailer: MailerPort,
    production: bool,
    now: datetime | None = None,
) -> User:
    """Replace the password of a signed-in account after checking the current one.

    Any outstanding reset token is withdrawn.

    Raises:
        ValidationError: no password on the account, wrong current password,
            weak or reused new password, confirmation mismatch
    """
    if not user.has_password:
        raise ValidationError(NO_PASSWORD_MESSAGE)

    errors = {}
    if not current_password:
        errors['current_password'] = "Current password is required"
    error = password_error(new_password, production=production)
    if error:
        errors['new_password'] = error
    if confirm_password is not None and new_password != confirm_password:
        errors['confirm_password'] = "Passwords do not match"
    if errors:
        raise ValidationError(next(iter(errors.values())), errors=errors)

    if not verify_password(current_password, user.password_hash):
        logger.info("Password change rejected: wrong current password", extra={"userId": user.id})
        raise ValidationError(WRONG_PASSWORD_MESSAGE, errors={'current_password': WRONG_PASSWORD_MESSAGE})
    if verify_password(new_password, user.password_hash):
        raise ValidationError(
            REUSED_PASSWORD_MESSAGE,
            errors={'new_password': REUSED_PASSWORD_MESSAGE},
        )

    now = now or datetime.now(timezone.utc)
    updated = repo.update_by_id(
        user.id,
        UserUpdate(
            set={'password_hash': hash_password(new_password), 'last_activity_at': now},
            unset=list(RESET_FIELDS),
        ),
        expected={'password_hash': user.password_hash},
    )
    if updated is None:
        # Password changed by a concurrent request
        raise ValidationError(WRONG_PASSWORD_MESSAGE, errors={'current_password': WRONG_PASSWORD_MESSAGE})

    logger.info("Password changed", extra={"userId": updated.id})

    try:
        mailer.send_password_changed(updated)
    except ExternalServiceError as e:
        logger.warning("Password change email failed", extra={"userId": updated.id, "error": e.message})

    return updated
