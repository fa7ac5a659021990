# backend/app/api/v1/auth.py
from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.access import get_principal, require_roles
from app.auth.session import Principal
from app.core.config import settings
from app.core.roles import READ_ROLES, is_tenant_bound, parse_role
from app.core.security import create_access_token
from app.crud.user_client import list_user_clients
from app.db.session import get_db
from app.models.client import Client
from app.models.profile import Profile
from app.models.user import User
from app.schemas.auth import (
    AccessibleClient,
    ClientSummary,
    MagicCodeRequest,
    MagicCodeVerify,
    MeResponse,
    ProfileUpdateRequest,
    TokenResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

MAGIC_CODE_EXPIRY_MINUTES = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes; treat them as UTC.
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def _should_return_magic_code_in_response() -> bool:
    """
    In prod, never return the OTP in API responses.
    Elsewhere, RETURN_MAGIC_CODE_IN_RESPONSE decides (handy for Swagger testing).
    """
    if settings.is_production:
        return False
    return settings.RETURN_MAGIC_CODE_IN_RESPONSE


async def purge_expired_magic_codes(db: AsyncSession) -> None:
    """
    Clear all expired magic codes globally.
    """
    stmt = (
        update(User)
        .where(User.magic_code_expires_at.is_not(None))
        .where(User.magic_code_expires_at < _utcnow())
        .values(magic_code=None, magic_code_expires_at=None)
    )
    await db.execute(stmt)


@router.post("/request-code")
async def request_code(payload: MagicCodeRequest, db: AsyncSession = Depends(get_db)):
    """
    Body: {"email": "user@example.com"}
    Accounts are provisioned by admins; unknown emails get the same reply and no code.
    """
    email = User.normalize_email(payload.email)

    await purge_expired_magic_codes(db)

    res = await db.execute(select(User).where(User.email == email))
    user = res.scalar_one_or_none()

    resp = {"status": "ok", "expires_in_minutes": MAGIC_CODE_EXPIRY_MINUTES}

    if user is None or not user.is_active:
        await db.commit()
        logger.info("Magic code requested for unknown or inactive email")
        return resp

    code = str(secrets.randbelow(900000) + 100000)  # 6 digits
    user.magic_code = code
    user.magic_code_expires_at = _utcnow() + timedelta(minutes=MAGIC_CODE_EXPIRY_MINUTES)

    await db.commit()

    if _should_return_magic_code_in_response():
        resp["code"] = code
    return resp


@router.post("/verify-code", response_model=TokenResponse)
async def verify_code(
    payload: MagicCodeVerify,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> TokenResponse:
    """
    Body: {"email":"user@example.com","code":"123456"}
    Returns: access_token, and sets it as the session cookie.
    """
    email = User.normalize_email(payload.email)
    code = payload.code.strip()

    if not code:
        raise HTTPException(status_code=400, detail="code is required")

    res = await db.execute(select(User).where(User.email == email))
    user = res.scalar_one_or_none()

    if not user or not user.is_active or not user.magic_code or not user.magic_code_expires_at:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid code")

    if not secrets.compare_digest(user.magic_code, code):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid code")

    if _as_aware(user.magic_code_expires_at) < _utcnow():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Code expired")

    # One-time use: clear after successful verification
    user.magic_code = None
    user.magic_code_expires_at = None
    await db.commit()

    access_token = create_access_token(
        subject=str(user.id),
        expires_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
    )
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=access_token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    logger.info("User signed in: user_id=%s", user.id)
    return TokenResponse(access_token=access_token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout() -> Response:
    # Tokens are stateless; signing out drops the browser's session cookie.
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return response


async def _to_me_response(db: AsyncSession, principal: Principal, profile: Profile) -> MeResponse:
    rows = await list_user_clients(db, principal.id)
    clients_by_id = {}
    if rows:
        res = await db.execute(select(Client).where(Client.id.in_([r.client_id for r in rows])))
        clients_by_id = {c.id: c for c in res.scalars().all()}

    accessible = [
        AccessibleClient(
            id=c.id,
            name=c.company_name,
            domain=c.domain,
            website=c.website,
            is_primary=row.is_primary,
        )
        for row in rows
        if (c := clients_by_id.get(row.client_id)) is not None
    ]

    client_details = None
    if is_tenant_bound(parse_role(profile.role)) and profile.client_id is not None:
        own = await db.get(Client, profile.client_id)
        if own is not None:
            client_details = ClientSummary(id=own.id, name=own.company_name, domain=own.domain, website=own.website)

    return MeResponse(
        id=principal.id,
        email=principal.email,
        role=profile.role,
        first_name=profile.first_name,
        last_name=profile.last_name,
        avatar_url=profile.avatar_url,
        client_id=profile.client_id,
        accessible_clients=accessible,
        client_details=client_details,
    )


@router.get("/me", response_model=MeResponse)
async def me(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
    profile: Profile = Depends(require_roles(*READ_ROLES)),
) -> MeResponse:
    """
    Current identity, role, and the clients this user may switch between.
    """
    return await _to_me_response(db, principal, profile)


@router.patch("/me", response_model=MeResponse)
async def update_me(
    payload: ProfileUpdateRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal),
    profile: Profile = Depends(require_roles(*READ_ROLES)),
) -> MeResponse:
    """
    Owners may edit their own name fields and avatar; role and client stay admin-managed.
    """
    data = payload.model_dump(exclude_unset=True)

    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields provided to update.")

    for field, value in data.items():
        if field in {"first_name", "last_name"} and value is None:
            value = ""
        setattr(profile, field, value)

    await db.commit()
    await db.refresh(profile)

    return await _to_me_response(db, principal, profile)
