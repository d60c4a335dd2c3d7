"""In-memory implementation of UserRepository for testing."""

import re
from dataclasses import replace
from datetime import datetime, timezone

from domain.model.errors import DuplicateError
from domain.model.user import MAX_NOTIFICATIONS, Role, User, as_utc
from domain.model.user_query import StatusFilter, UserCountFilter, UserPage, UserQuery, UserSort
from domain.model.user_update import UserUpdate

# Uniqueness order matches the MongoDB indexes
_UNIQUE_FIELDS = ('email', 'username', 'phone', 'external_id')
_SEARCH_FIELDS = ('name', 'email', 'username')


def _matches(user: User, expected: dict) -> bool:
    """Evaluate the subset of MongoDB filter syntax used for update guards."""
    for field, condition in expected.items():
        value = getattr(user, field, None)
        if isinstance(condition, dict) and '$regex' in condition:
            if value is None or not re.search(condition['$regex'], str(value)):
                return False
        elif isinstance(condition, dict) and '$ne' in condition:
            if value == condition['$ne']:
                return False
        elif value != condition:
            return False
    return True


class FakeUserRepository:
    def __init__(self):
        self.store: dict[str, User] = {}

    def _check_unique(self, candidate: User) -> None:
        for field in _UNIQUE_FIELDS:
            value = getattr(candidate, field)
            if value is None:
                continue
            for other in self.store.values():
                if other.id != candidate.id and getattr(other, field) == value:
                    raise DuplicateError(field)

    # ── write operations ─────────────────────────────────────

    def create(self, user: User) -> User:
        if user.id in self.store:
            raise DuplicateError('id', "User already exists")
        self._check_unique(user)
        self.store[user.id] = user
        return user

    def update_by_id(
        self,
        user_id: str,
        update: UserUpdate,
        *,
        expected: dict | None = None,
    ) -> User | None:
        user = self.store.get(user_id)
        if user is None or not _matches(user, expected or {}):
            return None

        changes = dict(update.set)
        for field in update.unset:
            changes[field] = 0 if field == 'password_reset_attempts' else None
        if update.push_notification is not None:
            notifications = [update.push_notification, *user.notifications]
            changes['notifications'] = notifications[:MAX_NOTIFICATIONS]
        changes['updated_at'] = datetime.now(timezone.utc)

        updated = replace(user, **changes)
        self._check_unique(updated)
        self.store[user_id] = updated
        return updated

    def increment_reset_attempts(self, user_id: str, now: datetime, max_attempts: int) -> User | None:
        user = self.store.get(user_id)
        if user is None or user.password_reset_expiry is None:
            return None
        if as_utc(user.password_reset_expiry) <= now or user.password_reset_attempts >= max_attempts:
            return None
        updated = replace(user, password_reset_attempts=user.password_reset_attempts + 1, updated_at=now)
        self.store[user_id] = updated
        return updated

    # ── read operations ──────────────────────────────────────

    def get_by_id(self, user_id: str) -> User | None:
        return self.store.get(user_id)

    def find_unique(
        self,
        *,
        email: str | None = None,
        username: str | None = None,
        phone: str | None = None,
        external_id: str | None = None,
        auth_method: str | None = None,
    ) -> User | None:
        criteria = {
            k: v for k, v in (
                ('email', email), ('username', username), ('phone', phone),
                ('external_id', external_id), ('auth_method', auth_method),
            ) if v is not None
        }
        if not criteria:
            return None
        for user in self.store.values():
            if all(getattr(user, k) == v for k, v in criteria.items()):
                return user
        return None

    def find_conflicts(
        self,
        *,
        email: str | None = None,
        username: str | None = None,
        phone: str | None = None,
        external_id: str | None = None,
    ) -> list[User]:
        criteria = [
            (k, v) for k, v in (
                ('email', email), ('username', username),
                ('phone', phone), ('external_id', external_id),
            ) if v
        ]
        return [
            user for user in self.store.values()
            if any(getattr(user, k) == v for k, v in criteria)
        ]

    def username_exists(self, username: str) -> bool:
        return any(u.username == username for u in self.store.values())

    def find_reset_candidates(
        self,
        now: datetime,
        max_attempts: int,
        user_id: str | None = None,
    ) -> list[User]:
        return [
            user for user in self.store.values()
            if (user_id is None or user.id == user_id)
            and user.password_reset_expiry is not None
            and as_utc(user.password_reset_expiry) > now
            and user.password_reset_attempts < max_attempts
        ]

    # ── admin queries ────────────────────────────────────────

    def search_users(self, query: UserQuery) -> UserPage:
        needle = query.search.lower()
        matched = [
            user for user in self.store.values()
            if (not needle or any(needle in (getattr(user, f) or '').lower() for f in _SEARCH_FIELDS))
            and (query.role is None or user.role == query.role)
            and _status_matches(user, query.status)
        ]
        if query.sort == UserSort.NAME:
            matched.sort(key=lambda u: u.name)
        else:
            matched.sort(key=lambda u: as_utc(u.created_at), reverse=query.sort == UserSort.NEWEST)
        users = matched[query.skip:query.skip + query.limit]
        return UserPage(users=users, total=len(matched), query=query)

    def count_users(self, criteria: UserCountFilter) -> int:
        return sum(
            1 for user in self.store.values()
            if user.role != Role.ADMIN
            and (criteria.created_since is None or as_utc(user.created_at) >= criteria.created_since)
            and (criteria.banned is None or user.banned == criteria.banned)
            and (criteria.verified is None or user.is_verified == criteria.verified)
        )


def _status_matches(user: User, status: StatusFilter | None) -> bool:
    if status == StatusFilter.BANNED:
        return user.banned
    if status == StatusFilter.ACTIVE:
        return not user.banned
    if status == StatusFilter.VERIFIED:
        return user.is_verified
    if status == StatusFilter.UNVERIFIED:
        return not user.is_verified
    return True
