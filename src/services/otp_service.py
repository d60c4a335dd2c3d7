"""Phone OTP verification.

The client completes the SMS challenge with the identity provider and posts
the resulting provider id together with the phone number. The provider's
record must carry exactly that number.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from domain.model.errors import (
    AccountSuspendedError,
    DuplicateError,
    NotFoundError,
    ValidationError,
)
from domain.model.user import AuthMethod, User
from domain.model.user_update import UserUpdate
from port.identity_provider import IdentityProviderPort
from port.user_repository import UserRepository
from services.validation import check_phone, normalize_phone

logger = logging.getLogger(__name__)


class OtpAction(str, Enum):
    SIGNUP = 'signup'
    SIGNIN = 'signin'


@dataclass(frozen=True)
class OtpResult:
    phone: str
    external_id: str
    user: User | None = None


def verify_otp(
    phone_number: str | None,
    external_id: str | None,
    action: str | None,
    *,
    repo: UserRepository,
    identity_provider: IdentityProviderPort,
) -> OtpResult:
    """Cross-check a phone number against the provider's verified identity.

    signup: confirms the number is free; creates nothing.
    signin: returns the phone-method account and marks the phone verified.

    Raises:
        ValidationError: bad input, unknown provider id, or number mismatch
        DuplicateError: signup with a registered number
        NotFoundError: signin without a phone-method account
        AccountSuspendedError: signin to a banned account
        ExternalServiceError: the provider is unreachable
    """
    errors = {}
    phone, error = check_phone(phone_number)
    if error:
        errors['phone_number'] = error
    if not external_id:
        errors['external_id'] = "Verification session is required"
    try:
        mode = OtpAction(action)
    except ValueError:
        mode = None
        errors['action'] = "Action must be signup or signin"
    if errors:
        raise ValidationError(next(iter(errors.values())), errors=errors)

    identity = identity_provider.get_identity(external_id)
    if identity is None:
        raise ValidationError("Invalid verification session")
    if normalize_phone(identity.phone_number) != phone:
        logger.warning("OTP phone mismatch", extra={"externalId": external_id})
        raise ValidationError("Phone number mismatch")

    if mode == OtpAction.SIGNUP:
        if repo.find_unique(phone=phone) is not None:
            raise DuplicateError('phone')
        return OtpResult(phone=phone, external_id=external_id)

    user = repo.find_unique(phone=phone, auth_method=AuthMethod.PHONE.value)
    if user is None:
        raise NotFoundError("No account found with this phone number")
    if user.banned:
        logger.info("OTP sign-in blocked for banned user", extra={"userId": user.id})
        raise AccountSuspendedError("Account has been suspended")

    now = datetime.now(timezone.utc)
    changes = {'phone_verified': True, 'last_activity_at': now, 'last_login_at': now}
    if user.external_id is None:
        changes['external_id'] = external_id
    updated = repo.update_by_id(user.id, UserUpdate(set=changes))
    logger.info("OTP sign-in", extra={"userId": user.id})
    return OtpResult(phone=phone, external_id=external_id, user=updated or user)
