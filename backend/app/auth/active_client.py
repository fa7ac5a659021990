from __future__ import annotations

import logging
import uuid
from typing import Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AuthorizationError, ResolutionError
from app.core.roles import is_tenant_bound, parse_role
from app.crud.user_client import user_has_client
from app.models.profile import Profile

logger = logging.getLogger(__name__)


def _parse_client_id(value: Union[str, uuid.UUID, None]) -> Optional[uuid.UUID]:
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    raw = value.strip()
    if not raw:
        return None
    try:
        return uuid.UUID(raw)
    except ValueError:
        raise ResolutionError("active client id must be a valid UUID")


async def resolve_active_client(
    db: AsyncSession,
    profile: Profile,
    override: Union[str, uuid.UUID, None] = None,
) -> uuid.UUID:
    """
    Decide which client the current request operates on.

    - client role: always the profile's own client; any override is ignored.
    - employee/admin: the override is required and must be one of the user's
      associated clients. Admins are validated the same way.
    """
    role = parse_role(profile.role)

    if is_tenant_bound(role):
        if profile.client_id is None:
            raise ResolutionError("active client context required")
        if override is not None:
            try:
                requested = _parse_client_id(override)
            except ResolutionError:
                requested = None
            if requested is not None and requested != profile.client_id:
                logger.info(
                    "Ignoring active client override for client user: user_id=%s requested=%s",
                    profile.id,
                    requested,
                )
        return profile.client_id

    client_id = _parse_client_id(override)
    if client_id is None:
        raise ResolutionError("active client context required")

    if not await user_has_client(db, profile.id, client_id):
        logger.warning(
            "Access denied (client_not_associated): user_id=%s role=%s client_id=%s",
            profile.id,
            role.value,
            client_id,
        )
        raise AuthorizationError("client not accessible")

    return client_id
