from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitPolicy:
    """At most `limit` hits per `window_seconds` for one (action, client) key."""
    action: str
    limit: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int  # seconds until the current window resets


RATE_LIMIT_MESSAGES = {
    'signup': "Too many registration attempts. Please try again later.",
    'username_check': "Too many username checks. Please slow down.",
    'password_reset_request': "Too many password reset attempts. Please wait 15 minutes before trying again.",
    'password_reset_verify': "Too many reset attempts. Please try again later.",
    'otp_verify': "Too many verification attempts. Please try again later.",
    'login': "Too many sign-in attempts. Please try again later.",
}


def rate_limit_message(action: str) -> str:
    return RATE_LIMIT_MESSAGES.get(action, "Too many requests. Please try again later.")
