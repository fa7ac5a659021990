# app/api/v1/clients.py
from __future__ import annotations

import logging
import uuid
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import Select, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.access import require_roles
from app.core.errors import AuthorizationError
from app.core.roles import ADMIN_ROLES, READ_ROLES, WRITE_ROLES, Role, parse_role
from app.crud.user_client import user_has_client
from app.db.session import get_db
from app.models.client import Client
from app.models.profile import Profile
from app.models.user_client import UserClient
from app.schemas.client import ClientCreate, ClientOut, ClientUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clients", tags=["clients"])

SORTABLE_COLUMNS = {
    "company_name": Client.company_name,
    "contact_person": Client.contact_person,
    "industry": Client.industry,
    "created_at": Client.created_at,
    "updated_at": Client.updated_at,
}


# ---------------------------------------------------------
# Helpers
# ---------------------------------------------------------
def _restrict_to_visible(stmt: Select, profile: Profile) -> Select:
    """
    client: own client only; employee: associated clients; admin: every client.
    """
    role = parse_role(profile.role)
    if role is Role.CLIENT:
        return stmt.where(Client.id == profile.client_id)
    if role is Role.EMPLOYEE:
        return stmt.join(UserClient, UserClient.client_id == Client.id).where(UserClient.user_id == profile.id)
    if role is Role.ADMIN:
        return stmt
    raise ValueError(f"Unhandled role: {role!r}")


async def _ensure_client_visible(db: AsyncSession, profile: Profile, client_id: uuid.UUID) -> None:
    role = parse_role(profile.role)
    if role is Role.CLIENT:
        allowed = profile.client_id == client_id
    elif role is Role.EMPLOYEE:
        allowed = await user_has_client(db, profile.id, client_id)
    elif role is Role.ADMIN:
        allowed = True
    else:
        raise ValueError(f"Unhandled role: {role!r}")

    if not allowed:
        logger.warning(
            "Access denied (client_not_visible): user_id=%s role=%s client_id=%s",
            profile.id,
            role.value,
            client_id,
        )
        raise AuthorizationError("client not accessible")


async def _get_client_or_404(db: AsyncSession, client_id: uuid.UUID) -> Client:
    client = await db.get(Client, client_id)
    if client is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    return client


# ---------------------------------------------------------
# Routes
# ---------------------------------------------------------
@router.get("", response_model=List[ClientOut])
async def list_clients(
    search: Optional[str] = Query(default=None, max_length=200),
    active: Optional[bool] = Query(default=None),
    sort_by: str = Query(default="company_name"),
    sort_order: Literal["asc", "desc"] = Query(default="asc"),
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(require_roles(*READ_ROLES)),
):
    column = SORTABLE_COLUMNS.get(sort_by)
    if column is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"sort_by must be one of: {', '.join(sorted(SORTABLE_COLUMNS))}",
        )

    stmt = _restrict_to_visible(select(Client), profile)

    if active is not None:
        stmt = stmt.where(Client.active.is_(active))

    if search and search.strip():
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(Client.company_name.ilike(pattern), Client.contact_person.ilike(pattern)))

    stmt = stmt.order_by(column.asc() if sort_order == "asc" else column.desc())
    res = await db.execute(stmt)
    return list(res.scalars().unique().all())


@router.post("", response_model=ClientOut, status_code=status.HTTP_201_CREATED)
async def create_client(
    payload: ClientCreate,
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(require_roles(*WRITE_ROLES)),
):
    client = Client(**payload.model_dump())
    db.add(client)
    await db.commit()
    await db.refresh(client)
    logger.info("Client created: client_id=%s by user_id=%s", client.id, profile.id)
    return client


@router.get("/{client_id}", response_model=ClientOut)
async def get_client(
    client_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(require_roles(*READ_ROLES)),
):
    await _ensure_client_visible(db, profile, client_id)
    return await _get_client_or_404(db, client_id)


@router.patch("/{client_id}", response_model=ClientOut)
async def update_client(
    client_id: uuid.UUID,
    payload: ClientUpdate,
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(require_roles(*WRITE_ROLES)),
):
    await _ensure_client_visible(db, profile, client_id)
    client = await _get_client_or_404(db, client_id)

    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No data provided")
    if "company_name" in data and data["company_name"] is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="company_name cannot be null")

    for field, value in data.items():
        setattr(client, field, value)

    await db.commit()
    await db.refresh(client)
    return client


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_client(
    client_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(require_roles(*ADMIN_ROLES)),
):
    client = await _get_client_or_404(db, client_id)

    bound_users = (
        await db.execute(select(func.count()).select_from(Profile).where(Profile.client_id == client_id))
    ).scalar_one()
    if bound_users:
        logger.warning(
            "Client delete refused: client_id=%s has %d bound client users (by user_id=%s)",
            client_id,
            bound_users,
            profile.id,
        )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Client still has client users; reassign or delete them first",
        )

    # Staff access to this client goes with it.
    removed = await db.execute(delete(UserClient).where(UserClient.client_id == client_id))

    await db.delete(client)
    await db.commit()
    logger.info(
        "Client deleted: client_id=%s associations_removed=%d by user_id=%s",
        client_id,
        removed.rowcount,
        profile.id,
    )
    return None
