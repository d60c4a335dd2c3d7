"""Authentication routes: signup, sign-in, password reset, OTP, session refresh."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from api.dependencies import get_identity_provider, get_mailer, get_user_repo
from api.errors import envelope
from api.models import (
    CheckUsernameRequest,
    ForgotPasswordRequest,
    GoogleSignInRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    UserSummary,
    VerifyOtpRequest,
    dump,
)
from api.rate_limit import rate_limit
from api.security import create_access_token, get_current_user, get_session_claims
from config import (
    APP_BASE_URL,
    IS_PRODUCTION,
    PASSWORD_RESET_MAX_ATTEMPTS,
    PASSWORD_RESET_TTL_MINUTES,
)
from domain.model.user import User
from port.identity_provider import IdentityProviderPort
from port.mailer import MailerPort
from port.user_repository import UserRepository
from services import (
    auth_service,
    otp_service,
    password_reset_service,
    session_service,
    signup_service,
)
from services.session_service import SessionClaims

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _session_payload(user: User) -> dict:
    return {
        "user": dump(UserSummary.from_user(user)),
        "token": create_access_token(user),
    }


@router.post(
    "/signup",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("signup"))],
)
def signup(
    request: SignupRequest,
    repo: UserRepository = Depends(get_user_repo),
    mailer: MailerPort = Depends(get_mailer),
    identity_provider: IdentityProviderPort = Depends(get_identity_provider),
    claims: Optional[SessionClaims] = Depends(get_session_claims),
):
    """Create an account (email, Google or phone) or complete a Google placeholder.

    Raises (via domain errors):
        400 validation, 401 Google session mismatch, 409 duplicate field
    """
    user = signup_service.signup(
        request.model_dump(),
        repo=repo,
        mailer=mailer,
        identity_provider=identity_provider,
        session=claims,
        production=IS_PRODUCTION,
    )
    return envelope("Account created successfully", success=True, **_session_payload(user))


@router.post("/login", dependencies=[Depends(rate_limit("login"))])
def login(request: LoginRequest, repo: UserRepository = Depends(get_user_repo)):
    """Sign in with email and password."""
    user = auth_service.authenticate(repo, request.email, request.password)
    logger.info("User logged in", extra={"userId": user.id})
    return envelope("Signed in successfully", success=True, **_session_payload(user))


@router.post("/google")
def google_sign_in(
    request: GoogleSignInRequest,
    repo: UserRepository = Depends(get_user_repo),
    identity_provider: IdentityProviderPort = Depends(get_identity_provider),
):
    """Sign in with a Google ID token.

    First-time users get a placeholder account and `needsOnboarding: true`;
    the returned token is then used for the Google signup call.
    """
    user = auth_service.google_sign_in(request.id_token, repo=repo, identity_provider=identity_provider)
    return envelope(
        "Please complete your profile" if user.is_placeholder else "Signed in successfully",
        success=True,
        needsOnboarding=user.is_placeholder,
        **_session_payload(user),
    )


@router.post("/check-username", dependencies=[Depends(rate_limit("username_check"))])
def check_username(request: CheckUsernameRequest, repo: UserRepository = Depends(get_user_repo)):
    available, message = signup_service.username_availability(repo, request.username)
    return envelope(message, success=True, available=available)


@router.get("/username-suggestions")
def username_suggestions(
    base: str = Query("", max_length=50),
    repo: UserRepository = Depends(get_user_repo),
):
    suggestions = signup_service.suggest_usernames(repo, base)
    return envelope(
        "Suggestions generated" if suggestions else "No suggestions available",
        success=True,
        suggestions=suggestions,
    )


@router.post("/forgot-password", dependencies=[Depends(rate_limit("password_reset_request"))])
def forgot_password(
    request: ForgotPasswordRequest,
    repo: UserRepository = Depends(get_user_repo),
    mailer: MailerPort = Depends(get_mailer),
):
    """Request a reset link. The response never confirms that an account exists."""
    outcome = password_reset_service.request_reset(
        request.email,
        repo=repo,
        mailer=mailer,
        base_url=APP_BASE_URL,
        ttl_minutes=PASSWORD_RESET_TTL_MINUTES,
    )
    return envelope(outcome.message, success=outcome.success)


@router.api_route(
    "/reset-password",
    methods=["POST", "PUT"],
    dependencies=[Depends(rate_limit("password_reset_verify"))],
)
def reset_password(
    request: ResetPasswordRequest,
    repo: UserRepository = Depends(get_user_repo),
    mailer: MailerPort = Depends(get_mailer),
):
    password_reset_service.complete_reset(
        request.token,
        request.password,
        request.confirm_password,
        repo=repo,
        mailer=mailer,
        production=IS_PRODUCTION,
        max_attempts=PASSWORD_RESET_MAX_ATTEMPTS,
    )
    return envelope(password_reset_service.RESET_SUCCESS_MESSAGE, success=True)


@router.post("/verify-otp", dependencies=[Depends(rate_limit("otp_verify"))])
def verify_otp(
    request: VerifyOtpRequest,
    repo: UserRepository = Depends(get_user_repo),
    identity_provider: IdentityProviderPort = Depends(get_identity_provider),
):
    """Cross-check a phone OTP session for signup or sign-in."""
    result = otp_service.verify_otp(
        request.phone_number,
        request.external_id,
        request.action,
        repo=repo,
        identity_provider=identity_provider,
    )
    if result.user is None:
        return envelope(
            "Phone number verified successfully",
            success=True,
            verified=True,
            phoneNumber=result.phone,
            externalId=result.external_id,
        )
    return envelope(
        "Signed in successfully",
        success=True,
        verified=True,
        **_session_payload(result.user),
    )


@router.get("/verify-otp")
def phone_status(
    phone: str = Query(...),
    repo: UserRepository = Depends(get_user_repo),
):
    """Whether a phone number is free to register."""
    available, canonical = signup_service.phone_availability(repo, phone)
    return envelope(
        "Phone number is available" if available else "Phone number is already registered",
        success=True,
        available=available,
        exists=not available,
        phone=canonical,
    )


@router.post("/update-session")
def update_session(
    user: User = Depends(get_current_user),
    repo: UserRepository = Depends(get_user_repo),
):
    """Re-read the live record and issue a refreshed token."""
    user = session_service.touch_activity(user, repo)
    return envelope("Session updated", success=True, **_session_payload(user))
