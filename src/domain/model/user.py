# domain/model/user.py

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

TEMP_USERNAME_PREFIX = 'temp_'
MAX_NOTIFICATIONS = 50

# Subject ids are uuid4().hex strings
USER_ID_PATTERN = re.compile(r'^[0-9a-f]{32}$')


class AuthMethod(str, Enum):
    EMAIL = 'email'
    GOOGLE = 'google'
    PHONE = 'phone'


class Role(str, Enum):
    HIRER = 'hirer'
    FIXER = 'fixer'
    ADMIN = 'admin'


@dataclass(frozen=True)
class Location:
    city: str
    state: str
    lat: float = 0.0
    lng: float = 0.0


@dataclass(frozen=True)
class Notification:
    type: str
    title: str
    message: str
    created_at: datetime
    read: bool = False


def new_user_id() -> str:
    return uuid.uuid4().hex


def is_valid_user_id(value: str | None) -> bool:
    return bool(value) and bool(USER_ID_PATTERN.match(value))


def is_placeholder_username(username: str | None) -> bool:
    return bool(username) and username.startswith(TEMP_USERNAME_PREFIX)


@dataclass
class User:
    """Domain model representing a Fixly account."""
    id: str
    name: str
    email: str
    username: str
    auth_method: AuthMethod
    created_at: datetime
    updated_at: datetime

    role: Role | None = None
    phone: str | None = None
    external_id: str | None = None
    password_hash: str | None = None
    providers: list[str] = field(default_factory=list)

    location: Location | None = None
    skills: list[str] = field(default_factory=list)
    bio: str = ''
    available_now: bool = False
    work_radius: int | None = None
    preferences: dict = field(default_factory=dict)
    notifications: list[Notification] = field(default_factory=list)

    is_verified: bool = False
    email_verified: bool = False
    phone_verified: bool = False
    verified_at: datetime | None = None
    verified_by: str | None = None

    banned: bool = False
    banned_reason: str | None = None
    banned_at: datetime | None = None
    banned_by: str | None = None

    password_reset_token_hash: str | None = None
    password_reset_expiry: datetime | None = None
    password_reset_attempts: int = 0

    profile_completed_at: datetime | None = None
    last_login_at: datetime | None = None
    last_activity_at: datetime | None = None

    # ── queries ───────────────────────────────────────────

    @property
    def is_placeholder(self) -> bool:
        """Google account created on first sign-in, awaiting profile completion."""
        return is_placeholder_username(self.username)

    @property
    def is_registered(self) -> bool:
        return bool(
            self.role
            and self.location
            and self.username
            and not self.is_placeholder
        )

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)

    def has_live_reset_token(self, now: datetime, max_attempts: int) -> bool:
        return (
            self.password_reset_token_hash is not None
            and self.password_reset_expiry is not None
            and as_utc(self.password_reset_expiry) > now
            and self.password_reset_attempts < max_attempts
        )


def as_utc(value: datetime) -> datetime:
    # pymongo returns naive UTC datetimes unless tz_aware=True
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def welcome_notification(user_name: str, role: Role | None) -> Notification:
    if role == Role.FIXER:
        tail = "You have 3 free job applications to get started."
    else:
        tail = "Start posting jobs to find skilled professionals."
    return Notification(
        type='welcome',
        title="Welcome to Fixly!",
        message=f"Welcome {user_name}! Your account has been created successfully. {tail}",
        created_at=datetime.now(timezone.utc),
    )
