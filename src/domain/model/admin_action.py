# domain/model/admin_action.py

from datetime import datetime
from enum import Enum
from typing import Callable

from domain.model.user import User
from domain.model.user_update import (
    BAN_DETAIL_FIELDS,
    VERIFICATION_DETAIL_FIELDS,
    UserUpdate,
)

DEFAULT_BAN_REASON = "Banned by admin"


class AdminAction(str, Enum):
    """Moderation actions an admin can apply to a non-admin account."""
    BAN = 'ban'
    UNBAN = 'unban'
    VERIFY = 'verify'
    UNVERIFY = 'unverify'
    VIEW = 'view'

    @property
    def is_mutating(self) -> bool:
        return self is not AdminAction.VIEW


# ── transitions ──────────────────────────────────────────
# Each returns the update to apply; an empty update means the target is
# already in the requested state.


def ban(target: User, actor_id: str, now: datetime, reason: str | None = None) -> UserUpdate:
    if target.banned:
        return UserUpdate()
    return UserUpdate(set={
        'banned': True,
        'banned_reason': reason or DEFAULT_BAN_REASON,
        'banned_at': now,
        'banned_by': actor_id,
    })


def unban(target: User, actor_id: str, now: datetime, reason: str | None = None) -> UserUpdate:
    if not target.banned and not any(getattr(target, f) for f in BAN_DETAIL_FIELDS):
        return UserUpdate()
    return UserUpdate(set={'banned': False}, unset=list(BAN_DETAIL_FIELDS))


def verify(target: User, actor_id: str, now: datetime, reason: str | None = None) -> UserUpdate:
    if target.is_verified and target.verified_at is not None:
        return UserUpdate()
    return UserUpdate(set={
        'is_verified': True,
        'verified_at': now,
        'verified_by': actor_id,
    })


def unverify(target: User, actor_id: str, now: datetime, reason: str | None = None) -> UserUpdate:
    if not target.is_verified and not any(getattr(target, f) for f in VERIFICATION_DETAIL_FIELDS):
        return UserUpdate()
    return UserUpdate(set={'is_verified': False}, unset=list(VERIFICATION_DETAIL_FIELDS))


Transition = Callable[..., UserUpdate]

TRANSITIONS: dict[AdminAction, tuple[Transition, str]] = {
    AdminAction.BAN: (ban, "User banned successfully"),
    AdminAction.UNBAN: (unban, "User unbanned successfully"),
    AdminAction.VERIFY: (verify, "User verified successfully"),
    AdminAction.UNVERIFY: (unverify, "User unverified successfully"),
}
