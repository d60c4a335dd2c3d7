# domain/model/user_query.py

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from domain.model.user import Role, User

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class StatusFilter(str, Enum):
    BANNED = 'banned'
    ACTIVE = 'active'
    VERIFIED = 'verified'
    UNVERIFIED = 'unverified'


class UserSort(str, Enum):
    NEWEST = 'newest'
    OLDEST = 'oldest'
    NAME = 'name'


@dataclass(frozen=True)
class UserQuery:
    """Admin listing criteria.

    `search` is a case-insensitive literal substring of name, email or
    username; it is never interpreted as a pattern.
    """
    search: str = ''
    role: Role | None = None
    status: StatusFilter | None = None
    sort: UserSort = UserSort.NEWEST
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class UserPage:
    users: list[User]
    total: int
    query: UserQuery

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.query.limit) if self.total else 0

    @property
    def has_more(self) -> bool:
        return self.query.skip + len(self.users) < self.total


@dataclass(frozen=True)
class UserCountFilter:
    """Criteria for account statistics. Admin accounts are never counted."""
    created_since: datetime | None = None
    banned: bool | None = None
    verified: bool | None = None
