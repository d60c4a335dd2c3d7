"""Signup field validation and fake-account heuristics.

Pure functions, no store access. `validate_signup` runs every field check
and reports all failures in one ValidationError so the form can show them
together.
"""

import re
from dataclasses import dataclass, field
from typing import Any

from domain.model.errors import ValidationError
from domain.model.user import TEMP_USERNAME_PREFIX, AuthMethod, Location, Role

USERNAME_PATTERN = re.compile(r'^[a-z0-9_]+$')
USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 20

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

MOBILE_PATTERN = re.compile(r'^[6-9]\d{9}$')
PHONE_COUNTRY_CODE = '91'
PLACEHOLDER_PHONE = '+919999999999'
PLACEHOLDER_PHONE_DIGITS = frozenset({'1234567890', '0987654321'})

NAME_PATTERN = re.compile(r"^[A-Za-z\s.'\-]+$")

PASSWORD_MIN_LENGTH = 6
PRODUCTION_PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 100
PRODUCTION_PASSWORD_PATTERN = re.compile(
    r'^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,}$'
)
WEAK_PASSWORDS = frozenset({
    'password', '123456', 'password123', 'admin', 'qwerty',
    'abc123', '111111', 'welcome', 'login', 'user',
})

MAX_SKILLS = 10
SKILL_MIN_LENGTH = 2
SKILL_MAX_LENGTH = 30

RESERVED_USERNAMES = frozenset({
    'admin', 'administrator', 'root', 'superuser', 'moderator', 'mod',
    'support', 'help', 'api', 'www', 'mail', 'email', 'ftp', 'blog',
    'shop', 'store', 'news', 'forum', 'test', 'demo', 'example', 'fixly',
    'system', 'null', 'undefined', 'user', 'users', 'profile', 'account',
    'login', 'signup', 'register', 'auth', 'oauth', 'about', 'contact',
    'privacy', 'terms', 'legal', 'jobs', 'job', 'hirer', 'fixer', 'worker',
    'service', 'services', 'dashboard', 'settings',
})

SUSPICIOUS_USERNAME_PATTERNS = (
    re.compile(r'^temp\d*$'),
    re.compile(r'^' + TEMP_USERNAME_PREFIX),
    re.compile(r'^[a-z]{1,2}\d{3,}$'),
    re.compile(r'^(user|test|demo)\d*$'),
    re.compile(r'admin|support|fixly'),
    re.compile(r'(.)\1{3,}'),
)

# Matched against whole words of names, skills and locations
BLOCKED_WORDS = frozenset({
    'temp', 'temporary', 'test', 'demo', 'example', 'placeholder', 'dummy',
    'fake', 'spam', 'null', 'undefined', 'unknown', 'anonymous', 'guest',
    'admin', 'system', 'bot', 'default', 'sample', 'trial',
    'fuck', 'shit', 'damn', 'ass', 'bitch', 'bastard', 'crap',
    'fixly', 'support', 'root', 'superuser',
})
FAKE_LOCATION_WORDS = frozenset({
    'temp', 'temporary', 'test', 'demo', 'example', 'fake', 'sample',
    'unknown', 'null', 'undefined', 'placeholder', 'dummy', 'xyz',
    'abc', '123', 'city', 'town', 'village', 'place',
})

PLACEHOLDER_EMAIL_WORDS = frozenset({'test', 'fake', 'temp', 'dummy', 'example'})
DISPOSABLE_NAME_PATTERN = re.compile(r'^(user|test|temp|guest|dummy)\s*\d*$', re.IGNORECASE)

SIGNUP_ROLES = (Role.HIRER, Role.FIXER)


def _words(text: str) -> set[str]:
    return set(re.findall(r'[a-z0-9]+', text.lower()))


# ── single-field checks ──────────────────────────────────
# Each returns (normalized value, error message or None).


def username_format_error(username: str) -> str | None:
    """Structural checks only: length and character set."""
    if not username:
        return "Username is required"
    if len(username) < USERNAME_MIN_LENGTH:
        return f"Username must be at least {USERNAME_MIN_LENGTH} characters"
    if len(username) > USERNAME_MAX_LENGTH:
        return f"Username cannot exceed {USERNAME_MAX_LENGTH} characters"
    if not USERNAME_PATTERN.match(username):
        return "Username can only contain lowercase letters, numbers, and underscores"
    return None


def check_username(raw: Any) -> tuple[str, str | None]:
    if not raw or not isinstance(raw, str) or not raw.strip():
        return '', "Username is required"
    username = raw.strip().lower()
    error = username_format_error(username)
    if error:
        return username, error
    if username in RESERVED_USERNAMES:
        return username, "This username is reserved"
    if any(p.search(username) for p in SUSPICIOUS_USERNAME_PATTERNS):
        return username, "Please choose a more unique username"
    return username, None


def check_email(raw: Any) -> tuple[str, str | None]:
    if not raw or not isinstance(raw, str) or not raw.strip():
        return '', "Email is required"
    email = raw.strip().lower()
    if not EMAIL_PATTERN.match(email):
        return email, "Please enter a valid email address"
    return email, None


def check_phone(raw: Any) -> tuple[str | None, str | None]:
    if not raw or not isinstance(raw, str):
        return None, "Phone number is required"
    digits = re.sub(r'\D', '', raw)
    if len(digits) == 12 and digits.startswith(PHONE_COUNTRY_CODE):
        digits = digits[len(PHONE_COUNTRY_CODE):]
    if len(digits) != 10:
        return None, "Phone number must be 10 digits"
    if not MOBILE_PATTERN.match(digits):
        return None, "Please enter a valid Indian mobile number"
    if len(set(digits)) == 1 or digits in PLACEHOLDER_PHONE_DIGITS:
        return None, "Please enter a real phone number"
    return f"+{PHONE_COUNTRY_CODE}{digits}", None


def normalize_phone(raw: Any) -> str | None:
    """Canonical +91XXXXXXXXXX form, or None when the number is invalid."""
    return check_phone(raw)[0]


def check_name(raw: Any) -> tuple[str, str | None]:
    if not isinstance(raw, str) or not raw.strip():
        return '', "Name is required"
    name = ' '.join(raw.split())
    if len(name) < 2:
        return name, "Name must be at least 2 characters"
    if len(name) > 50:
        return name, "Name cannot exceed 50 characters"
    if re.search(r'\d', name):
        return name, "Name cannot contain numbers"
    if not NAME_PATTERN.match(name):
        return name, "Name contains invalid characters"
    if _words(name) & BLOCKED_WORDS:
        return name, "Please enter your real name"
    if re.search(r'(.)\1{3,}', name) or re.match(r'^(.+)\s+\1$', name, re.IGNORECASE):
        return name, "Please enter a valid name"
    return name, None


def password_error(password: Any, *, production: bool) -> str | None:
    if not password or not isinstance(password, str):
        return "Password is required"
    if len(password) > PASSWORD_MAX_LENGTH:
        return f"Password cannot exceed {PASSWORD_MAX_LENGTH} characters"
    if production:
        if len(password) < PRODUCTION_PASSWORD_MIN_LENGTH:
            return f"Password must be at least {PRODUCTION_PASSWORD_MIN_LENGTH} characters"
        if not PRODUCTION_PASSWORD_PATTERN.match(password):
            return "Password must contain uppercase, lowercase, number and special character"
    elif len(password) < PASSWORD_MIN_LENGTH:
        return f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
    if password.lower() in WEAK_PASSWORDS:
        return "Please choose a stronger password"
    return None


def check_role(raw: Any) -> tuple[Role | None, str | None]:
    try:
        role = Role(raw)
    except ValueError:
        return None, "Please select a valid role"
    if role not in SIGNUP_ROLES:
        return None, "Please select a valid role"
    return role, None


def check_location(raw: Any) -> tuple[Location | None, str | None]:
    if not isinstance(raw, dict) or not raw:
        return None, "Location is required"
    city = raw.get('city') or raw.get('name')
    state = raw.get('state')
    if not isinstance(city, str) or not isinstance(state, str):
        return None, "Please select a valid city and state"
    city = city.split(',')[0].strip()
    state = state.strip()
    if len(city) < 2 or len(state) < 2:
        return None, "Please select a valid location"
    if (_words(city) | _words(state)) & FAKE_LOCATION_WORDS:
        return None, "Please select a real location"
    try:
        lat = float(raw.get('lat') or 0)
        lng = float(raw.get('lng') or 0)
    except (TypeError, ValueError):
        return None, "Please select a valid location"
    return Location(city=city, state=state, lat=lat, lng=lng), None


def check_skills(raw: Any, role: Role | None) -> tuple[list[str], str | None]:
    """Fixers need at least one usable skill; other roles carry none.

    Unusable entries are dropped rather than reported individually.
    """
    if role != Role.FIXER:
        return [], None
    if not isinstance(raw, list) or not raw:
        return [], "Fixers must select at least one skill"
    if len(raw) > MAX_SKILLS:
        return [], f"Maximum {MAX_SKILLS} skills allowed"

    skills = []
    for item in raw:
        if not isinstance(item, str):
            continue
        skill = item.strip().lower()
        if not SKILL_MIN_LENGTH <= len(skill) <= SKILL_MAX_LENGTH:
            continue
        if skill.isdigit() or _words(skill) & BLOCKED_WORDS:
            continue
        if skill not in skills:
            skills.append(skill)

    if not skills:
        return [], "Please select valid skills"
    return skills, None


# ── signup ───────────────────────────────────────────────


@dataclass
class SignupData:
    """Normalized signup input."""
    auth_method: AuthMethod
    email: str
    username: str
    name: str
    role: Role
    phone: str
    location: Location
    skills: list[str] = field(default_factory=list)
    password: str | None = None
    external_id: str | None = None


def validate_signup(data: dict, *, production: bool) -> SignupData:
    """Validate raw signup fields.

    Args:
        data: snake_case fields: auth_method, email, username, name, phone,
            password, role, location, skills, external_id
        production: apply the strict password policy

    Raises:
        ValidationError: with `errors` keyed by field; every field is checked
    """
    errors: dict[str, str] = {}

    try:
        auth_method = AuthMethod(data.get('auth_method') or AuthMethod.EMAIL)
    except ValueError:
        auth_method = None
        errors['auth_method'] = "Invalid authentication method"

    email, error = check_email(data.get('email'))
    if error:
        errors['email'] = error

    username, error = check_username(data.get('username'))
    if error:
        errors['username'] = error

    raw_name = data.get('name')
    if raw_name is None or (isinstance(raw_name, str) and not raw_name.strip()):
        name = username
    else:
        name, error = check_name(raw_name)
        if error:
            errors['name'] = error

    phone, error = check_phone(data.get('phone'))
    if error:
        errors['phone'] = error

    role, error = check_role(data.get('role'))
    if error:
        errors['role'] = error

    location, error = check_location(data.get('location'))
    if error:
        errors['location'] = error

    skills, error = check_skills(data.get('skills'), role)
    if error:
        errors['skills'] = error

    password = data.get('password')
    if auth_method == AuthMethod.EMAIL:
        error = password_error(password, production=production)
        if error:
            errors['password'] = error
    else:
        password = None

    if errors:
        raise ValidationError("Validation failed", errors=errors)

    return SignupData(
        auth_method=auth_method,
        email=email,
        username=username,
        name=name,
        role=role,
        phone=phone,
        location=location,
        skills=skills,
        password=password,
        external_id=data.get('external_id') or None,
    )


@dataclass(frozen=True)
class FakeAccountReport:
    is_suspicious: bool
    indicators: list[str]


def detect_fake_account(data: SignupData) -> FakeAccountReport:
    """Flag placeholder-looking signups. Any indicator rejects the signup."""
    indicators = []

    if data.username.startswith(TEMP_USERNAME_PREFIX):
        indicators.append("Temporary username pattern")

    if data.phone == PLACEHOLDER_PHONE:
        indicators.append("Placeholder phone number")

    local, _, domain = data.email.partition('@')
    if local in PLACEHOLDER_EMAIL_WORDS or domain.split('.')[0] in PLACEHOLDER_EMAIL_WORDS:
        indicators.append("Placeholder email address")

    if DISPOSABLE_NAME_PATTERN.match(data.name):
        indicators.append("Disposable name")

    if data.location and (
        'temp' in data.location.city.lower() or 'temp' in data.location.state.lower()
    ):
        indicators.append("Temporary location")

    return FakeAccountReport(is_suspicious=bool(indicators), indicators=indicators)
