import logging
from datetime import datetime, timedelta, timezone
from jose import jwt, JWTError, ExpiredSignatureError
from hdfhr.core.config import (
    JWT_SECRET, JWT_ALGORITHM, JWT_ISSUER, ACCESS_TOKEN_EXPIRE_MINUTES
)
from hdfhr.core.errors import AuthError

log = logging.getLogger(__name__)

DEFAULT_ROLE_CLAIM = "user"


def create_access_token(user_id: str, email: str, role: str | None = None,
                        expires_minutes: int | None = None) -> str:
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=expires_minutes or ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role or DEFAULT_ROLE_CLAIM,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
        "iss": JWT_ISSUER,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature, expiry and issuer; return the claims.

    Raises AuthError on any failure.
    """
    if not token or token.count(".") != 2:
        raise AuthError("Invalid token format")
    try:
        payload = jwt.decode(
            token, JWT_SECRET, algorithms=[JWT_ALGORITHM], issuer=JWT_ISSUER,
            options={"require_exp": True, "require_sub": True},
        )
    except ExpiredSignatureError:
        raise AuthError("Token expired")
    except JWTError as e:
        log.info("Rejected access token: %s", e)
        raise AuthError("Invalid token")
    if not payload.get("sub"):
        raise AuthError("Invalid token")
    return payload
