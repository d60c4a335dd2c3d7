"""Pydantic models for API request/response.

JSON bodies are camelCase; Python attributes stay snake_case.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, StrictInt
from pydantic.alias_generators import to_camel

from domain.model.user import Notification, User


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── requests ─────────────────────────────────────────────
# Signup-style fields stay loosely typed so the validation service can
# report every field at once.


class SignupRequest(CamelModel):
    auth_method: str = "email"
    email: Optional[str] = None
    username: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None
    location: Optional[dict[str, Any]] = None
    skills: Optional[list[Any]] = None
    external_id: Optional[str] = None


class LoginRequest(CamelModel):
    email: EmailStr
    password: str


class GoogleSignInRequest(CamelModel):
    id_token: str = Field(..., min_length=1)


class CheckUsernameRequest(CamelModel):
    username: Optional[str] = None


class ForgotPasswordRequest(CamelModel):
    email: Optional[str] = None


class ResetPasswordRequest(CamelModel):
    token: Optional[str] = None
    password: Optional[str] = Field(None, validation_alias=AliasChoices("password", "newPassword"))
    confirm_password: Optional[str] = None


class VerifyOtpRequest(CamelModel):
    phone_number: Optional[str] = None
    external_id: Optional[str] = None
    action: Optional[str] = None


class ProfileUpdateRequest(CamelModel):
    """Only these fields may be changed through the profile endpoint."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    name: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[dict[str, Any]] = None
    skills: Optional[list[Any]] = None
    available_now: Optional[bool] = None
    work_radius: Optional[StrictInt] = None
    preferences: Optional[dict[str, Any]] = None


class AdminActionRequest(CamelModel):
    reason: Optional[str] = Field(None, max_length=500)


class AdminBulkActionRequest(CamelModel):
    action: str
    user_ids: list[str]
    reason: Optional[str] = Field(None, max_length=500)


class ChangePasswordRequest(CamelModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None
    confirm_password: Optional[str] = None


# ── responses ────────────────────────────────────────────


class UserSummary(CamelModel):
    """Normalized public profile carried by sessions."""
    id: str
    name: str
    email: str
    username: str
    role: Optional[str] = None
    is_verified: bool
    auth_method: str
    is_registered: bool

    @classmethod
    def from_user(cls, user: User) -> "UserSummary":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            username=user.username,
            role=user.role.value if user.role else None,
            is_verified=user.is_verified,
            auth_method=user.auth_method.value,
            is_registered=user.is_registered,
        )


class LocationResponse(CamelModel):
    city: str
    state: str
    lat: float = 0.0
    lng: float = 0.0


class NotificationResponse(CamelModel):
    type: str
    title: str
    message: str
    created_at: datetime
    read: bool = False

    @classmethod
    def from_domain(cls, notification: Notification) -> "NotificationResponse":
        return cls(
            type=notification.type,
            title=notification.title,
            message=notification.message,
            created_at=notification.created_at,
            read=notification.read,
        )


class UserProfile(UserSummary):
    """The account holder's own profile."""
    phone: Optional[str] = None
    location: Optional[LocationResponse] = None
    bio: str = ""
    skills: list[str] = []
    available_now: bool = False
    work_radius: Optional[int] = None
    preferences: dict[str, Any] = {}
    providers: list[str] = []
    email_verified: bool = False
    phone_verified: bool = False
    banned: bool = False
    created_at: datetime
    last_login_at: Optional[datetime] = None
    profile_completed_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user: User) -> "UserProfile":
        summary = UserSummary.from_user(user)
        location = None
        if user.location:
            location = LocationResponse(
                city=user.location.city,
                state=user.location.state,
                lat=user.location.lat,
                lng=user.location.lng,
            )
        return cls(
            **summary.model_dump(),
            phone=user.phone,
            location=location,
            bio=user.bio,
            skills=list(user.skills),
            available_now=user.available_now,
            work_radius=user.work_radius,
            preferences=dict(user.preferences),
            providers=list(user.providers),
            email_verified=user.email_verified,
            phone_verified=user.phone_verified,
            banned=user.banned,
            created_at=user.created_at,
            last_login_at=user.last_login_at,
            profile_completed_at=user.profile_completed_at,
        )


class AccountStatsResponse(CamelModel):
    jobs_posted: Optional[int] = None
    jobs_completed: Optional[int] = None
    total_earnings: Optional[float] = None
    member_since: datetime
    last_active: datetime
    notification_count: int


class AdminUserView(UserProfile):
    """Everything an admin sees about an account, minus credentials."""
    banned_reason: Optional[str] = None
    banned_at: Optional[datetime] = None
    banned_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    verified_by: Optional[str] = None
    last_activity_at: Optional[datetime] = None
    notifications: list[NotificationResponse] = []
    stats: Optional[AccountStatsResponse] = None


class AdminUserListItem(UserProfile):
    banned_reason: Optional[str] = None
    member_since: datetime
    last_active: datetime

    @classmethod
    def from_user(cls, user: User) -> "AdminUserListItem":
        return cls(
            **UserProfile.from_user(user).model_dump(),
            banned_reason=user.banned_reason,
            member_since=user.created_at,
            last_active=user.last_login_at or user.created_at,
        )


class PaginationResponse(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_more: bool


class PlatformStatsResponse(CamelModel):
    total_users: int
    new_users_this_month: int
    banned_users: int
    verified_users: int
    active_jobs: int
    completed_jobs_this_month: int
    open_disputes: int


def dump(model: BaseModel) -> dict:
    """Serialize a response model as camelCase JSON-ready data."""
    return model.model_dump(by_alias=True, mode="json", exclude_none=False)
