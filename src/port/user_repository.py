"""Port definition for the identity store."""

from datetime import datetime
from typing import Protocol

from domain.model.user import User
from domain.model.user_query import UserCountFilter, UserPage, UserQuery
from domain.model.user_update import UserUpdate


class UserRepository(Protocol):
    """Protocol defining the interface for user data access.

    Implementations raise DuplicateError when a unique field collides and
    RepositoryError when the store is unreachable.
    """

    def create(self, user: User) -> User:
        """Insert a new user. Raise DuplicateError naming the colliding field."""
        ...

    def get_by_id(self, user_id: str) -> User | None:
        """Find a user by ID. Return User or None if not found."""
        ...

    def find_unique(
        self,
        *,
        email: str | None = None,
        username: str | None = None,
        phone: str | None = None,
        external_id: str | None = None,
        auth_method: str | None = None,
    ) -> User | None:
        """Find the user matching all given identity fields."""
        ...

    def find_conflicts(
        self,
        *,
        email: str | None = None,
        username: str | None = None,
        phone: str | None = None,
        external_id: str | None = None,
    ) -> list[User]:
        """Find every user sharing at least one of the given identity fields."""
        ...

    def username_exists(self, username: str) -> bool: ...

    def update_by_id(
        self,
        user_id: str,
        update: UserUpdate,
        *,
        expected: dict | None = None,
    ) -> User | None:
        """Apply an atomic partial update. Return the updated user or None if
        no document matched (including a failed `expected` guard)."""
        ...

    def find_reset_candidates(
        self,
        now: datetime,
        max_attempts: int,
        user_id: str | None = None,
    ) -> list[User]:
        """Users holding an unexpired reset token with attempts below the cap."""
        ...

    def increment_reset_attempts(
        self,
        user_id: str,
        now: datetime,
        max_attempts: int,
    ) -> User | None:
        """Count one verification attempt against a live token.

        Return the updated user, or None if the token was no longer live.
        """
        ...

    def search_users(self, query: UserQuery) -> UserPage:
        """One page of users matching the admin listing criteria."""
        ...

    def count_users(self, criteria: UserCountFilter) -> int:
        """Count non-admin accounts matching `criteria`."""
        ...
