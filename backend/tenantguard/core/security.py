"""Security primitives: password hashing, opaque tokens and license keys."""

import hashlib
import re
import secrets
import uuid
from functools import lru_cache
from pathlib import Path

import bcrypt

from tenantguard.core.config import get_settings

# bcrypt only looks at the first 72 bytes; longer input raises in bcrypt>=4.1
_BCRYPT_MAX_BYTES = 72
_MIN_LENGTH = 8

# (pattern that must match, message when it does not)
_CHARACTER_CLASSES = (
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter"),
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter"),
    (re.compile(r"\d"), "Password must contain at least one digit"),
    (re.compile(r'[!@#$%^&*(),.?":{}|<>]'), "Password must contain at least one special character"),
)


class PasswordValidationError(ValueError):
    """Raised when a password fails the strength policy."""


@lru_cache(maxsize=1)
def _common_passwords() -> frozenset[str]:
    path = Path(__file__).with_name("common_passwords.txt")
    if not path.exists():
        return frozenset()
    with path.open(encoding="utf-8") as f:
        return frozenset(line.strip().lower() for line in f if line.strip())


def validate_password(password: str) -> None:
    """Check `password` against the strength policy.

    Between 8 characters and 72 bytes, one character from each class in
    `_CHARACTER_CLASSES`, and absent from the bundled common-password list.

    Raises:
        PasswordValidationError: with the first rule that failed
    """
    if len(password) < _MIN_LENGTH:
        raise PasswordValidationError(f"Password must be at least {_MIN_LENGTH} characters long")
    if len(password.encode("utf-8")) > _BCRYPT_MAX_BYTES:
        raise PasswordValidationError(f"Password must be at most {_BCRYPT_MAX_BYTES} bytes long")

    for pattern, message in _CHARACTER_CLASSES:
        if not pattern.search(password):
            raise PasswordValidationError(message)

    if password.lower() in _common_passwords():
        raise PasswordValidationError("Password is too common. Please choose a more unique password")


def hash_password(password: str) -> str:
    """Hash a password using bcrypt with the configured cost."""
    salt = bcrypt.gensalt(rounds=get_settings().bcrypt_rounds)
    hashed = bcrypt.hashpw(password.encode("utf-8")[:_BCRYPT_MAX_BYTES], salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """Verify a password against its bcrypt hash.

    Returns False for a missing or malformed hash instead of ever falling
    back to a plaintext comparison.
    """
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8")[:_BCRYPT_MAX_BYTES],
            hashed_password.encode("utf-8"),
        )
    except ValueError:
        return False


def generate_token() -> str:
    """Generate a raw bearer token (384 bits of entropy, hex encoded)."""
    return secrets.token_hex(48)


def hash_token(raw_token: str) -> str:
    """SHA-256 digest used to store and look up bearer tokens."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def generate_license_key() -> str:
    """Generate a new license key (UUID v4 string)."""
    return str(uuid.uuid4())
