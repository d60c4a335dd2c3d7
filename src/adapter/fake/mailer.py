"""In-memory implementation of MailerPort for testing."""

from domain.model.errors import ExternalServiceError
from domain.model.user import User


class FakeMailer:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[dict] = []

    def _record(self, kind: str, user: User, **data) -> None:
        if self.fail:
            raise ExternalServiceError("Failed to send email")
        self.sent.append({'kind': kind, 'to': user.email, **data})

    def send_welcome(self, user: User) -> None:
        self._record('welcome', user)

    def send_password_reset(self, user: User, reset_url: str) -> None:
        self._record('password_reset', user, reset_url=reset_url)

    def send_password_changed(self, user: User) -> None:
        self._record('password_changed', user)

    def of_kind(self, kind: str) -> list[dict]:
        return [m for m in self.sent if m['kind'] == kind]
