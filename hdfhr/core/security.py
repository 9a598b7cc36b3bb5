import hashlib
import hmac
import re
import secrets
from hdfhr.core.config import PASSWORD_HASH_ITERATIONS

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
LEGACY_SHA256_RE = re.compile(r"^[0-9a-f]{64}$")
MIN_PASSWORD_LENGTH = 8


def _pbkdf2(password: str, salt: str, iterations: int) -> str:
    return hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations).hex()


def hash_password(password: str, iterations: int | None = None) -> str:
    """Hash a password as ``iterations:salt:hash`` (PBKDF2-HMAC-SHA256, hex)."""
    iterations = iterations or PASSWORD_HASH_ITERATIONS
    salt = secrets.token_hex(16)
    return f"{iterations}:{salt}:{_pbkdf2(password, salt, iterations)}"


def _is_legacy_hash(stored: str) -> bool:
    return bool(LEGACY_SHA256_RE.match(stored))


def verify_password(plain: str, stored: str | None) -> bool:
    if not stored:
        return False
    if _is_legacy_hash(stored):
        # accounts created before salted hashing stored a bare sha256 digest
        check = hashlib.sha256(plain.encode()).hexdigest()
        return hmac.compare_digest(check, stored)
    try:
        iterations_str, salt, expected = stored.split(":", 2)
        iterations = int(iterations_str)
    except ValueError:
        return False
    if iterations <= 0 or not salt or not expected:
        return False
    return hmac.compare_digest(_pbkdf2(plain, salt, iterations), expected)


def needs_rehash(stored: str) -> bool:
    if _is_legacy_hash(stored):
        return True
    try:
        iterations = int(stored.split(":", 1)[0])
    except ValueError:
        return True
    return iterations < PASSWORD_HASH_ITERATIONS


def generate_reset_token() -> str:
    return secrets.token_hex(32)


def generate_temporary_password() -> str:
    # satisfies validate_password_strength
    return f"Hd{secrets.token_urlsafe(12)}9"


def validate_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email or ""))


def validate_password_strength(password: str) -> tuple[bool, str]:
    if len(password) < MIN_PASSWORD_LENGTH:
        return False, f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
    if not re.search(r"[A-Z]", password):
        return False, "Password must contain at least one uppercase letter"
    if not re.search(r"[a-z]", password):
        return False, "Password must contain at least one lowercase letter"
    if not re.search(r"[0-9]", password):
        return False, "Password must contain at least one number"
    return True, "Password is strong"


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()
