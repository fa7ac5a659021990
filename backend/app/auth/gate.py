from __future__ import annotations

import logging
from typing import AbstractSet

from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.session import Principal
from app.core.errors import AuthorizationError, ProfileIntegrityError
from app.core.roles import Role, is_tenant_bound, parse_role
from app.models.profile import Profile

logger = logging.getLogger(__name__)


async def authorize(
    db: AsyncSession,
    principal: Principal,
    allowed_roles: AbstractSet[Role],
) -> Profile:
    """
    Load the principal's profile and check it against the operation's allow-list.

    Ordinary denials are logged at WARNING. A client profile without a client_id
    is a provisioning defect and is logged at ERROR.
    """
    profile = await db.get(Profile, principal.id)
    if profile is None:
        logger.warning("Access denied (profile_missing): user_id=%s", principal.id)
        raise AuthorizationError("profile not found")

    try:
        role = parse_role(profile.role)
    except ValueError:
        logger.error("Access denied (unknown_role): user_id=%s role=%r", principal.id, profile.role)
        raise AuthorizationError("insufficient permissions")

    if role not in allowed_roles:
        logger.warning(
            "Access denied (role_denied): user_id=%s role=%s allowed=%s",
            principal.id,
            role.value,
            sorted(r.value for r in allowed_roles),
        )
        raise AuthorizationError("insufficient permissions")

    if is_tenant_bound(role) and profile.client_id is None:
        logger.error(
            "Provisioning defect: client-role profile without client_id (user_id=%s)",
            principal.id,
        )
        raise ProfileIntegrityError("client association missing")

    return profile
