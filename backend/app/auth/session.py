from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AuthenticationError
from app.core.security import decode_access_token
from app.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    id: uuid.UUID
    email: str


def pick_credential(bearer_token: Optional[str], cookie_value: Optional[str]) -> Optional[str]:
    """Authorization header wins; the session cookie is the browser fallback."""
    if bearer_token:
        return bearer_token
    if cookie_value:
        return cookie_value
    return None


async def resolve_session(db: AsyncSession, credential: Optional[str]) -> Principal:
    """
    Validate the session credential and return the principal behind it.
    Read-only; every failure is a non-retryable AuthenticationError.
    """
    subject = decode_access_token(credential)

    try:
        user_id = uuid.UUID(subject)
    except ValueError:
        logger.warning("Session token carries a non-UUID subject")
        raise AuthenticationError("no valid session")

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        logger.warning("Session for unknown or inactive user_id=%s", user_id)
        raise AuthenticationError("no valid session")

    return Principal(id=user.id, email=user.email)
