"""Port definition for outbound account email."""

from typing import Protocol

from domain.model.user import User


class MailerPort(Protocol):
    """Every method raises ExternalServiceError when delivery fails."""

    def send_welcome(self, user: User) -> None: ...
    def send_password_reset(self, user: User, reset_url: str) -> None: ...
    def send_password_changed(self, user: User) -> None: ...
