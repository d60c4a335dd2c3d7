"""Credential hashing.

Passwords use bcrypt; reset tokens are high-entropy random strings, so a
plain SHA-256 digest is enough to keep the raw value out of the store.
"""

import hashlib
import hmac
import secrets

import bcrypt

BCRYPT_ROUNDS = 12
RESET_TOKEN_BYTES = 32


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def generate_reset_token(user_id: str) -> str:
    """Return "<user id>.<random>" so completion can go straight to the record."""
    return f"{user_id}.{secrets.token_urlsafe(RESET_TOKEN_BYTES)}"


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def verify_reset_token(token: str, token_hash: str | None) -> bool:
    if not token_hash:
        return False
    return hmac.compare_digest(hash_reset_token(token), token_hash)


def reset_token_selector(token: str) -> str | None:
    """User id carried by a reset token, or None for an unscoped token."""
    selector, sep, _ = token.partition('.')
    return selector if sep else None
