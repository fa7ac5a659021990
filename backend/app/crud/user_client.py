# app/crud/user_client.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AssociationValidationError, SyncError
from app.core.roles import is_tenant_bound, parse_role
from app.models.client import Client
from app.models.profile import Profile
from app.models.user_client import UserClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncResult:
    user_id: uuid.UUID
    client_ids: FrozenSet[uuid.UUID]
    added: FrozenSet[uuid.UUID]
    removed: FrozenSet[uuid.UUID]
    primary_client_id: Optional[uuid.UUID]


async def list_user_clients(db: AsyncSession, user_id: uuid.UUID) -> list[UserClient]:
    stmt = (
        select(UserClient)
        .where(UserClient.user_id == user_id)
        .order_by(UserClient.is_primary.desc(), UserClient.created_at.asc())
    )
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def accessible_client_ids(db: AsyncSession, user_id: uuid.UUID) -> set[uuid.UUID]:
    res = await db.execute(select(UserClient.client_id).where(UserClient.user_id == user_id))
    return set(res.scalars().all())


async def user_has_client(db: AsyncSession, user_id: uuid.UUID, client_id: uuid.UUID) -> bool:
    stmt = (
        select(UserClient.id)
        .where(UserClient.user_id == user_id)
        .where(UserClient.client_id == client_id)
        .limit(1)
    )
    return (await db.execute(stmt)).scalar_one_or_none() is not None


async def _validate_sync_input(
    db: AsyncSession,
    user_id: uuid.UUID,
    desired: FrozenSet[uuid.UUID],
    primary_client_id: Optional[uuid.UUID],
) -> None:
    if primary_client_id is not None and primary_client_id not in desired:
        raise AssociationValidationError("primary_client_id must be one of client_ids")

    profile = await db.get(Profile, user_id)
    if profile is None:
        raise AssociationValidationError("User profile not found")
    try:
        role = parse_role(profile.role)
    except ValueError:
        raise AssociationValidationError(f"Unknown role on profile: {profile.role!r}")
    if is_tenant_bound(role):
        raise AssociationValidationError("Client users are bound to a single client and take no associations")

    if desired:
        res = await db.execute(select(Client.id).where(Client.id.in_(desired)))
        unknown = desired - set(res.scalars().all())
        if unknown:
            raise AssociationValidationError(
                f"Unknown client ids: {sorted(str(c) for c in unknown)}"
            )


async def sync_associations(
    db: AsyncSession,
    user_id: uuid.UUID,
    desired_client_ids: Iterable[uuid.UUID],
    primary_client_id: Optional[uuid.UUID] = None,
) -> SyncResult:
    """
    Make the user's association set exactly equal to desired_client_ids.

    Runs inside the caller's transaction and flushes; the caller commits.
    Any database failure rolls the whole session back and surfaces as SyncError.
    """
    desired = frozenset(desired_client_ids)
    await _validate_sync_input(db, user_id, desired, primary_client_id)

    try:
        rows = (
            await db.execute(
                select(UserClient)
                .where(UserClient.user_id == user_id)
                .with_for_update()
            )
        ).scalars().all()
        current = {row.client_id: row for row in rows}

        to_add = desired - current.keys()
        to_remove = frozenset(current.keys() - desired)

        # Pass 1: deletes and demotions, so the partial unique index on
        # is_primary never sees two primaries for this user.
        for client_id in to_remove:
            await db.delete(current[client_id])
        for client_id, row in current.items():
            if client_id in desired and row.is_primary and client_id != primary_client_id:
                row.is_primary = False
        await db.flush()

        # Pass 2: promotion and inserts.
        for client_id, row in current.items():
            if client_id in desired and client_id == primary_client_id and not row.is_primary:
                row.is_primary = True
        for client_id in sorted(to_add, key=str):
            db.add(
                UserClient(
                    user_id=user_id,
                    client_id=client_id,
                    is_primary=(client_id == primary_client_id),
                )
            )
        await db.flush()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Association sync failed for user_id=%s; rolled back", user_id)
        raise SyncError("association sync failed") from exc

    logger.info(
        "Associations synced: user_id=%s added=%d removed=%d primary=%s",
        user_id,
        len(to_add),
        len(to_remove),
        primary_client_id,
    )
    return SyncResult(
        user_id=user_id,
        client_ids=desired,
        added=frozenset(to_add),
        removed=to_remove,
        primary_client_id=primary_client_id,
    )
