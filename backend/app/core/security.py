from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi.security import HTTPBearer
from jose import JWTError, jwt

from app.core.config import settings
from app.core.errors import AuthenticationError

# auto_error=False: browser sessions carry the token in a cookie instead.
bearer_scheme = HTTPBearer(auto_error=False)

SESSION_TOKEN_TYPE = "portal_session"

_QUOTES = ("\"", "'")


def clean_credential(raw: Optional[str]) -> str:
    """
    Strip what a pasted credential tends to pick up: whitespace, one pair of
    matching quotes, and a leading "Bearer " (header value pasted into a cookie
    or the Swagger token field).
    """
    value = (raw or "").strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in _QUOTES:
        value = value[1:-1].strip()
    scheme, _, rest = value.partition(" ")
    if rest and scheme.lower() == "bearer":
        value = rest.strip()
    return value


def create_access_token(subject: str, expires_minutes: Optional[int] = None) -> str:
    issued_at = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    claims: dict[str, Any] = {
        "sub": str(subject),
        "typ": SESSION_TOKEN_TYPE,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + lifetime).timestamp()),
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: Optional[str]) -> str:
    """Return the session subject (user id string) or raise AuthenticationError."""
    token = clean_credential(token)
    if not token:
        raise AuthenticationError("no valid session")

    try:
        claims = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require_sub": True, "require_exp": True},
        )
    except JWTError:
        raise AuthenticationError("no valid session")

    if claims.get("typ") != SESSION_TOKEN_TYPE or not claims.get("sub"):
        raise AuthenticationError("no valid session")
    return str(claims["sub"])
