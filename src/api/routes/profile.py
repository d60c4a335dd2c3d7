"""Profile routes for the signed-in user."""

import logging

from fastapi import APIRouter, Depends

from api.dependencies import get_mailer, get_user_repo
from api.errors import envelope
from api.models import ChangePasswordRequest, ProfileUpdateRequest, UserProfile, dump
from api.rate_limit import rate_limit
from api.security import get_active_user
from config import IS_PRODUCTION
from domain.model.user import User
from port.mailer import MailerPort
from port.user_repository import UserRepository
from services import password_reset_service, profile_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/user", tags=["user"])


@router.get("/profile", dependencies=[Depends(rate_limit("profile_get"))])
def get_profile(user: User = Depends(get_active_user)):
    return envelope("Profile retrieved", success=True, user=dump(UserProfile.from_user(user)))


@router.put("/profile", dependencies=[Depends(rate_limit("profile_update"))])
def update_profile(
    request: ProfileUpdateRequest,
    user: User = Depends(get_active_user),
    repo: UserRepository = Depends(get_user_repo),
):
    """Update allowed profile fields. Unknown fields are rejected with 400."""
    updated = profile_service.update_profile(user, request.model_dump(exclude_unset=True), repo)
    return envelope("Profile updated successfully", success=True, user=dump(UserProfile.from_user(updated)))


@router.post("/change-password", dependencies=[Depends(rate_limit("password_change"))])
def change_password(
    request: ChangePasswordRequest,
    user: User = Depends(get_active_user),
    repo: UserRepository = Depends(get_user_repo),
    mailer: MailerPort = Depends(get_mailer),
):
    """Change the password of an email account; the current password is required."""
    password_reset_service.change_password(
        user,
        request.current_password,
        request.new_password,
        request.confirm_password,
        repo=repo,
        mailer=mailer,
        production=IS_PRODUCTION,
    )
    return envelope(password_reset_service.PASSWORD_CHANGED_MESSAGE, success=True)
