"""Partial update descriptor applied atomically by the identity store."""

from dataclasses import dataclass, field
from typing import Any

from domain.model.user import Notification


@dataclass
class UserUpdate:
    """Fields to set, fields to remove, and an optional notification to prepend.

    Keys are User attribute names. The store applies the whole descriptor in
    one atomic document update.
    """
    set: dict[str, Any] = field(default_factory=dict)
    unset: list[str] = field(default_factory=list)
    push_notification: Notification | None = None

    def __post_init__(self):
        overlap = set(self.set) & set(self.unset)
        if overlap:
            raise ValueError(f"Fields both set and unset: {sorted(overlap)}")

    @property
    def is_empty(self) -> bool:
        return not self.set and not self.unset and self.push_notification is None


RESET_FIELDS = ['password_reset_token_hash', 'password_reset_expiry', 'password_reset_attempts']
BAN_DETAIL_FIELDS = ['banned_reason', 'banned_at', 'banned_by']
VERIFICATION_DETAIL_FIELDS = ['verified_at', 'verified_by']
