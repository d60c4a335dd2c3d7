"""Domain-level exceptions.

Services raise these errors to express business rule violations.
The API layer maps them to HTTP status codes and the response envelope.
"""


class DomainError(Exception):
    """Base class for all domain errors."""

    def __init__(self, message: str = "Request failed"):
        self.message = message
        super().__init__(message)


class ValidationError(DomainError):
    """Input violates a business validation rule.

    `errors` maps field names to messages when more than one field failed.
    """

    def __init__(self, message: str = "Validation failed", errors: dict[str, str] | None = None):
        self.errors = errors or {}
        super().__init__(message)


class DuplicateError(DomainError):
    """Entity with the same unique key already exists."""

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message or duplicate_message(field))


class AuthenticationError(DomainError):
    """Caller is not authenticated or credentials are invalid."""


class InvalidSessionError(AuthenticationError):
    """Session subject is missing, malformed or still a placeholder."""

    def __init__(self, message: str = "Invalid session", needs_onboarding: bool = False):
        self.needs_onboarding = needs_onboarding
        super().__init__(message)


class PermissionDeniedError(DomainError):
    """Caller lacks permission for the requested action."""


class AccountSuspendedError(PermissionDeniedError):
    """Target account is banned."""

    def __init__(self, message: str = "Account is suspended. Please contact support."):
        super().__init__(message)


class NotFoundError(DomainError):
    """Requested entity does not exist."""


class InvalidOrExpiredTokenError(DomainError):
    """Password reset token is unknown, expired or exhausted."""

    def __init__(self, message: str = "Invalid or expired reset token. Please request a new password reset."):
        super().__init__(message)


class RateLimitedError(DomainError):
    """Too many attempts for a throttled action."""

    def __init__(self, message: str, retry_after: int):
        self.retry_after = retry_after
        super().__init__(message)


class ExternalServiceError(DomainError):
    """An external dependency (email, identity provider) failed."""


class RepositoryError(DomainError):
    """The identity store is unreachable or rejected an operation."""


_DUPLICATE_MESSAGES = {
    'email': "Email already exists",
    'username': "Username is already taken",
    'phone': "Phone number is already registered",
    'external_id': "This sign-in account is already linked to another user",
}


def duplicate_message(field: str) -> str:
    return _DUPLICATE_MESSAGES.get(field, f"{field.replace('_', ' ').capitalize()} is already taken")
