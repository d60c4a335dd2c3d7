"""In-memory implementation of IdentityProviderPort for testing."""

from domain.model.errors import ExternalServiceError
from port.identity_provider import ExternalIdentity


class FakeIdentityProvider:
    def __init__(self):
        self.identities: dict[str, ExternalIdentity] = {}
        self.tokens: dict[str, str] = {}  # id token -> external id
        self.unavailable = False

    def add(self, identity: ExternalIdentity, id_token: str | None = None) -> ExternalIdentity:
        self.identities[identity.external_id] = identity
        if id_token:
            self.tokens[id_token] = identity.external_id
        return identity

    def get_identity(self, external_id: str) -> ExternalIdentity | None:
        if self.unavailable:
            raise ExternalServiceError("Identity provider unavailable")
        return self.identities.get(external_id)

    def verify_id_token(self, id_token: str) -> ExternalIdentity | None:
        if self.unavailable:
            raise ExternalServiceError("Identity provider unavailable")
        external_id = self.tokens.get(id_token)
        if external_id is None:
            return None
        return self.identities.get(external_id)
