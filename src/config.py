"""Application configuration read from environment variables.

Values are resolved once at import time. `api.main` calls `load_dotenv()`
before importing anything that reads this module.
"""

import logging
import os

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: {value!r}, using {default}")
        return default


APP_ENV = os.getenv('APP_ENV', 'development').lower()
IS_PRODUCTION = APP_ENV == 'production'
DEBUG = _env_bool('DEBUG', default=False)

APP_BASE_URL = os.getenv('APP_BASE_URL', 'http://localhost:3000').rstrip('/')
SERVICE_NAME = "Fixly Accounts API"

# Session tokens
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
JWT_ALGORITHM = "HS256"
JWT_EXPIRATION_DAYS = _env_int('JWT_EXPIRATION_DAYS', 30)

# Password reset
PASSWORD_RESET_TTL_MINUTES = _env_int('PASSWORD_RESET_TTL_MINUTES', 15)
PASSWORD_RESET_MAX_ATTEMPTS = 3

# Email
RESEND_API_KEY = os.getenv('RESEND_API_KEY', '')
EMAIL_FROM = os.getenv('EMAIL_FROM', 'Fixly <noreply@fixly.app>')

# Rate limits: action -> (max requests, window seconds)
DEFAULT_RATE_LIMITS: dict[str, tuple[int, int]] = {
    'signup': (5, 60 * 60),
    'username_check': (30, 60),
    'password_reset_request': (3, 15 * 60),
    'password_reset_verify': (5, 60 * 60),
    'otp_verify': (10, 60),
    'profile_get': (100, 60),
    'profile_update': (20, 60),
    'admin_user_action': (30, 60),
    'admin_users': (100, 60),
    'password_change': (5, 15 * 60),
    'login': (5, 15 * 60),
}


def _parse_rate_limit(action: str, default: tuple[int, int]) -> tuple[int, int]:
    """Read RATE_LIMIT_<ACTION> as "<count>/<seconds>"."""
    raw = os.getenv(f"RATE_LIMIT_{action.upper()}")
    if not raw:
        return default
    try:
        count, seconds = raw.split('/', 1)
        return int(count), int(seconds)
    except ValueError:
        logger.warning(f"Invalid rate limit for {action}: {raw!r}, using default")
        return default


RATE_LIMITS: dict[str, tuple[int, int]] = {
    action: _parse_rate_limit(action, default)
    for action, default in DEFAULT_RATE_LIMITS.items()
}
