"""Firebase Admin adapter.

Implements IdentityProviderPort on top of the Firebase Admin SDK:
- get_identity(): phone OTP sessions carry the Firebase uid
- verify_id_token(): Google sign-in posts a Firebase ID token

Credentials come from GOOGLE_APPLICATION_CREDENTIALS.
"""

import logging

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin.exceptions import (
    DeadlineExceededError,
    FirebaseError,
    UnavailableError,
)
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from domain.model.errors import ExternalServiceError
from port.identity_provider import ExternalIdentity

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (UnavailableError, DeadlineExceededError)


def init_firebase() -> None:
    """Initialize Firebase Admin SDK (idempotent)."""
    try:
        firebase_admin.get_app()
    except ValueError:
        firebase_admin.initialize_app()


@retry(
    retry=retry_if_exception_type(_TRANSIENT_ERRORS),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=4),
    reraise=True,
)
def _get_user_with_retry(uid: str):
    return firebase_auth.get_user(uid)


def _provider_of(record) -> str | None:
    for info in getattr(record, 'provider_data', None) or []:
        if info.provider_id:
            return info.provider_id
    return None


class FirebaseIdentityProvider:
    def __init__(self):
        init_firebase()

    def get_identity(self, external_id: str) -> ExternalIdentity | None:
        try:
            record = _get_user_with_retry(external_id)
        except firebase_auth.UserNotFoundError:
            logger.info("Identity not found", extra={"externalId": external_id})
            return None
        except (FirebaseError, ValueError) as e:
            logger.error(
                "Identity provider lookup failed",
                extra={"externalId": external_id, "error": str(e)},
            )
            raise ExternalServiceError("Identity provider unavailable") from e

        return ExternalIdentity(
            external_id=record.uid,
            email=record.email,
            name=record.display_name,
            phone_number=record.phone_number,
            picture=record.photo_url,
            provider=_provider_of(record),
            email_verified=bool(record.email_verified),
        )

    def verify_id_token(self, id_token: str) -> ExternalIdentity | None:
        try:
            decoded = firebase_auth.verify_id_token(id_token)
        except (
            firebase_auth.InvalidIdTokenError,
            firebase_auth.ExpiredIdTokenError,
            firebase_auth.RevokedIdTokenError,
            ValueError,
        ) as e:
            logger.info("ID token rejected", extra={"error": str(e)})
            return None
        except FirebaseError as e:
            logger.error("ID token verification failed", extra={"error": str(e)})
            raise ExternalServiceError("Identity provider unavailable") from e

        return ExternalIdentity(
            external_id=decoded['uid'],
            email=decoded.get('email'),
            name=decoded.get('name'),
            phone_number=decoded.get('phone_number'),
            picture=decoded.get('picture'),
            provider=(decoded.get('firebase') or {}).get('sign_in_provider'),
            email_verified=bool(decoded.get('email_verified')),
        )
