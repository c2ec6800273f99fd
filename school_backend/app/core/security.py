"""
Password hashing helpers (bcrypt).
"""

import re
import bcrypt
from school_backend.app.core.config import settings

# At least 8 characters, one lowercase, one uppercase, one digit
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)[a-zA-Z\d@$!%*?&]{8,}$")
PASSWORD_RULE = "Password must be at least 8 characters with uppercase, lowercase, and number"


def get_password_hash(password: str) -> str:
    """Hash password with configurable rounds."""
    # Bcrypt has a 72 byte limit
    password_bytes = password.encode("utf-8")[:72]
    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=settings.bcrypt_rounds))
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Constant-time check of a password against a stored bcrypt hash."""
    password_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(password_bytes, hashed_password.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def is_strong_password(password: str) -> bool:
    return bool(PASSWORD_PATTERN.match(password or ""))


# Compared against when the username does not exist, so both failure paths cost one bcrypt check.
DUMMY_PASSWORD_HASH = get_password_hash("not-a-real-password")
