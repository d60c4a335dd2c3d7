"""Port definition for the external identity provider (phone OTP, Google)."""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class ExternalIdentity:
    """Identity asserted by the provider."""
    external_id: str
    email: str | None = None
    name: str | None = None
    phone_number: str | None = None
    picture: str | None = None
    provider: str | None = None
    email_verified: bool = False


class IdentityProviderPort(Protocol):
    def get_identity(self, external_id: str) -> ExternalIdentity | None:
        """Look up an identity by provider id. None if the provider does not know it.

        Raises ExternalServiceError when the provider cannot be reached.
        """
        ...

    def verify_id_token(self, id_token: str) -> ExternalIdentity | None:
        """Verify a sign-in token. None if invalid or expired."""
        ...
