"""Resend adapter for account email.

Implements MailerPort. Bodies are small inline HTML documents; links point
at APP_BASE_URL.
"""

import logging
from html import escape

import resend

from config import APP_BASE_URL, EMAIL_FROM, PASSWORD_RESET_TTL_MINUTES, RESEND_API_KEY
from domain.model.errors import ExternalServiceError
from domain.model.user import Role, User

logger = logging.getLogger(__name__)


def init_resend(api_key: str = RESEND_API_KEY) -> None:
    """Initialize Resend with API key if available."""
    if not api_key:
        return
    resend.api_key = api_key


def _layout(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html><html><body style=\"font-family:Arial,sans-serif;color:#1f2937\">"
        f"<h2 style=\"color:#0d9488\">{escape(title)}</h2>"
        f"{body}"
        "<p style=\"color:#6b7280;font-size:12px\">The Fixly team</p>"
        "</body></html>"
    )


def _button(url: str, label: str) -> str:
    return (
        f"<p><a href=\"{escape(url, quote=True)}\" "
        "style=\"background:#0d9488;color:#fff;padding:10px 18px;border-radius:6px;"
        f"text-decoration:none\">{escape(label)}</a></p>"
    )


class ResendMailer:
    def __init__(self, sender: str = EMAIL_FROM, base_url: str = APP_BASE_URL):
        self.sender = sender
        self.base_url = base_url
        init_resend()

    def _send(self, to: str, subject: str, html: str, kind: str) -> None:
        try:
            resend.Emails.send({
                "from": self.sender,
                "to": to,
                "subject": subject,
                "html": html,
            })
        except Exception as e:
            logger.error("Email delivery failed", extra={"emailType": kind, "error": str(e)})
            raise ExternalServiceError("Failed to send email") from e
        logger.info("Email sent", extra={"emailType": kind})

    # ── MailerPort implementation ────────────────────────────

    def send_welcome(self, user: User) -> None:
        if user.role == Role.FIXER:
            next_step = "Complete your skills to start receiving job requests."
            link = f"{self.base_url}/dashboard/profile"
        else:
            next_step = "Post your first job and get offers from local fixers."
            link = f"{self.base_url}/dashboard/post-job"
        body = (
            f"<p>Hi {escape(user.name)},</p>"
            "<p>Your Fixly account is ready.</p>"
            f"<p>{escape(next_step)}</p>"
            f"{_button(link, 'Go to dashboard')}"
        )
        self._send(user.email, "Welcome to Fixly!", _layout("Welcome to Fixly!", body), 'welcome')

    def send_password_reset(self, user: User, reset_url: str) -> None:
        body = (
            f"<p>Hi {escape(user.name)},</p>"
            "<p>We received a request to reset your password.</p>"
            f"{_button(reset_url, 'Reset password')}"
            f"<p>This link expires in {PASSWORD_RESET_TTL_MINUTES} minutes. "
            "If you did not ask for a reset you can ignore this email.</p>"
        )
        self._send(user.email, "Reset your Fixly password", _layout("Password reset", body), 'password_reset')

    def send_password_changed(self, user: User) -> None:
        body = (
            f"<p>Hi {escape(user.name)},</p>"
            "<p>Your Fixly password was just changed.</p>"
            "<p>If this was not you, reset your password right away and contact support.</p>"
            f"{_button(f'{self.base_url}/auth/forgot-password', 'Secure my account')}"
        )
        self._send(user.email, "Your Fixly password was changed", _layout("Password changed", body), 'password_changed')
