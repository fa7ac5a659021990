from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.active_client import resolve_active_client
from app.auth.gate import authorize
from app.auth.session import Principal, pick_credential, resolve_session
from app.core.config import settings
from app.core.roles import Role, parse_role
from app.core.security import bearer_scheme
from app.db.session import get_db
from app.models.profile import Profile


@dataclass(frozen=True)
class AccessContext:
    """Everything a client-scoped handler needs; built fresh for every request."""

    principal: Principal
    profile: Profile
    client_id: uuid.UUID

    @property
    def role(self) -> Role:
        return parse_role(self.profile.role)

    @property
    def user_id(self) -> uuid.UUID:
        return self.principal.id


async def get_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """
    Stage 1: session resolver. Bearer header first, session cookie second.
    """
    bearer = credentials.credentials if credentials else None
    cookie = request.cookies.get(settings.SESSION_COOKIE_NAME)
    return await resolve_session(db, pick_credential(bearer, cookie))


def require_roles(*allowed_roles: Role):
    """
    Stage 2: role gate. Returns the caller's Profile when the role is allowed.
    """
    allowed = frozenset(parse_role(r) for r in allowed_roles)
    if not allowed:
        raise ValueError("require_roles() needs at least one role")

    async def _checker(
        principal: Principal = Depends(get_principal),
        db: AsyncSession = Depends(get_db),
    ) -> Profile:
        return await authorize(db, principal, allowed)

    return _checker


def require_client_context(*allowed_roles: Role):
    """
    Stages 2 and 3: role gate, then active-client resolution.
    The override is read from the dedicated header only, never from a payload.
    """
    gate = require_roles(*allowed_roles)

    async def _resolver(
        request: Request,
        principal: Principal = Depends(get_principal),
        profile: Profile = Depends(gate),
        db: AsyncSession = Depends(get_db),
    ) -> AccessContext:
        override = request.headers.get(settings.ACTIVE_CLIENT_HEADER)
        client_id = await resolve_active_client(db, profile, override)
        return AccessContext(principal=principal, profile=profile, client_id=client_id)

    return _resolver
