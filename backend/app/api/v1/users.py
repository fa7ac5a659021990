# app/api/v1/users.py
from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.access import require_roles
from app.core.roles import ADMIN_ROLES, Role, is_tenant_bound, parse_role
from app.crud.user_client import SyncResult, list_user_clients, sync_associations
from app.db.session import get_db
from app.models.client import Client
from app.models.profile import Profile
from app.models.user import User
from app.schemas.user import (
    AssociationOut,
    AssociationSyncRequest,
    SyncResultOut,
    UserCreate,
    UserOut,
    UserUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


# ---------------------------------------------------------
# Helpers
# ---------------------------------------------------------
def _to_user_out(user: User, profile: Profile) -> UserOut:
    return UserOut(
        id=user.id,
        email=user.email,
        is_active=user.is_active,
        first_name=profile.first_name,
        last_name=profile.last_name,
        role=profile.role,
        client_id=profile.client_id,
        avatar_url=profile.avatar_url,
        created_at=user.created_at,
    )


def _to_sync_out(result: SyncResult) -> SyncResultOut:
    return SyncResultOut(
        user_id=result.user_id,
        client_ids=sorted(result.client_ids, key=str),
        added=sorted(result.added, key=str),
        removed=sorted(result.removed, key=str),
        primary_client_id=result.primary_client_id,
    )


async def _get_user_and_profile(db: AsyncSession, user_id: uuid.UUID) -> tuple[User, Profile]:
    row = (
        await db.execute(
            select(User, Profile).join(Profile, Profile.id == User.id).where(User.id == user_id)
        )
    ).first()
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return row[0], row[1]


async def _ensure_client_exists(db: AsyncSession, client_id: uuid.UUID) -> None:
    if await db.get(Client, client_id) is None:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail="client_id does not exist")


# ---------------------------------------------------------
# Routes (admin only)
# ---------------------------------------------------------
@router.get("", response_model=List[UserOut])
async def list_users(
    role: Optional[List[Role]] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    _admin: Profile = Depends(require_roles(*ADMIN_ROLES)),
):
    stmt = select(User, Profile).join(Profile, Profile.id == User.id).order_by(User.created_at.desc())
    if role:
        stmt = stmt.where(Profile.role.in_([r.value for r in role]))
    res = await db.execute(stmt)
    return [_to_user_out(user, profile) for user, profile in res.all()]


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
    admin: Profile = Depends(require_roles(*ADMIN_ROLES)),
):
    email = User.normalize_email(payload.email)
    existing = (await db.execute(select(User.id).where(User.email == email))).scalar_one_or_none()
    if existing is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A user with this email already exists")

    if payload.client_id is not None:
        await _ensure_client_exists(db, payload.client_id)

    user = User(email=email, is_active=True)
    db.add(user)
    await db.flush()

    profile = Profile(
        id=user.id,
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        role=payload.role.value,
        client_id=payload.client_id,
    )
    db.add(profile)
    await db.flush()

    if not is_tenant_bound(payload.role) and (payload.client_ids or payload.primary_client_id is not None):
        # Validation or sync failures roll back the user and profile rows too.
        await sync_associations(db, user.id, payload.client_ids, payload.primary_client_id)

    await db.commit()
    await db.refresh(user)
    await db.refresh(profile)

    logger.info("User provisioned: user_id=%s role=%s by admin_id=%s", user.id, profile.role, admin.id)
    return _to_user_out(user, profile)


@router.get("/{user_id}", response_model=UserOut)
async def get_user(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _admin: Profile = Depends(require_roles(*ADMIN_ROLES)),
):
    user, profile = await _get_user_and_profile(db, user_id)
    return _to_user_out(user, profile)


@router.patch("/{user_id}", response_model=UserOut)
async def update_user(
    user_id: uuid.UUID,
    payload: UserUpdate,
    db: AsyncSession = Depends(get_db),
    admin: Profile = Depends(require_roles(*ADMIN_ROLES)),
):
    user, profile = await _get_user_and_profile(db, user_id)

    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields provided to update.")

    new_role = data.get("role") or parse_role(profile.role)
    new_client_id = data["client_id"] if "client_id" in data else profile.client_id

    if is_tenant_bound(new_role):
        if new_client_id is None:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail="client role requires client_id")
        await _ensure_client_exists(db, new_client_id)
    elif "client_id" in data and data["client_id"] is not None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=f"{new_role.value} role must not set client_id",
        )
    else:
        new_client_id = None

    moving_to_client = is_tenant_bound(new_role) and not is_tenant_bound(parse_role(profile.role))

    for field in ("first_name", "last_name"):
        if field in data:
            setattr(profile, field, (data[field] or "").strip())
    if "avatar_url" in data:
        profile.avatar_url = data["avatar_url"]
    if "is_active" in data and data["is_active"] is not None:
        user.is_active = data["is_active"]

    profile.role = new_role.value
    profile.client_id = new_client_id
    await db.flush()

    if moving_to_client:
        # Client users hold no associations; drop the staff ones directly.
        for row in await list_user_clients(db, user.id):
            await db.delete(row)

    await db.commit()
    await db.refresh(user)
    await db.refresh(profile)

    logger.info("User updated: user_id=%s role=%s by admin_id=%s", user.id, profile.role, admin.id)
    return _to_user_out(user, profile)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    admin: Profile = Depends(require_roles(*ADMIN_ROLES)),
):
    if user_id == admin.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Admins cannot delete themselves")

    user, profile = await _get_user_and_profile(db, user_id)

    for row in await list_user_clients(db, user.id):
        await db.delete(row)
    await db.delete(profile)
    await db.delete(user)
    await db.commit()

    logger.info("User deleted: user_id=%s by admin_id=%s", user_id, admin.id)
    return None


# =========================================================
# CLIENT ASSOCIATIONS
# =========================================================
@router.get("/{user_id}/clients", response_model=List[AssociationOut])
async def list_user_associations(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _admin: Profile = Depends(require_roles(*ADMIN_ROLES)),
):
    await _get_user_and_profile(db, user_id)

    rows = await list_user_clients(db, user_id)
    names = {}
    if rows:
        res = await db.execute(
            select(Client.id, Client.company_name).where(Client.id.in_([r.client_id for r in rows]))
        )
        names = dict(res.all())

    return [
        AssociationOut(client_id=r.client_id, is_primary=r.is_primary, company_name=names.get(r.client_id))
        for r in rows
    ]


@router.put("/{user_id}/clients", response_model=SyncResultOut)
async def replace_user_associations(
    user_id: uuid.UUID,
    payload: AssociationSyncRequest,
    db: AsyncSession = Depends(get_db),
    admin: Profile = Depends(require_roles(*ADMIN_ROLES)),
):
    await _get_user_and_profile(db, user_id)

    result = await sync_associations(db, user_id, payload.client_ids, payload.primary_client_id)
    await db.commit()

    logger.info("Associations replaced for user_id=%s by admin_id=%s", user_id, admin.id)
    return _to_sync_out(result)
