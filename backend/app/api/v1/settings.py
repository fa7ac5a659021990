# app/api/v1/settings.py
from __future__ import annotations

import uuid
from typing import Dict, List, Literal, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.access import AccessContext, require_client_context
from app.core.roles import READ_ROLES
from app.crud.scoping import get_scoped_or_404, scoped_to_client
from app.db.session import get_db
from app.models.setting import Setting
from app.schemas.common import Pagination
from app.schemas.setting import (
    SettingOut,
    SettingPage,
    SettingsGroupDeleted,
    SettingsGroupUpsert,
    SettingsUpsert,
    SettingUpdate,
    as_setting_value,
)

router = APIRouter(prefix="/settings", tags=["settings"])


def _split_keys(keys: Optional[str]) -> List[str]:
    if not keys:
        return []
    return [k.strip() for k in keys.split(",") if k.strip()]


@router.get("", response_model=Union[SettingPage, Dict[str, str]])
async def list_settings(
    group: Optional[str] = Query(default=None),
    keys: Optional[str] = Query(default=None, description="Comma-separated setting keys"),
    format: Literal["default", "keyValue"] = Query(default="default"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*READ_ROLES)),
):
    stmt = scoped_to_client(select(Setting), Setting, ctx.client_id)
    if group:
        stmt = stmt.where(Setting.setting_group == group)
    wanted = _split_keys(keys)
    if wanted:
        stmt = stmt.where(Setting.setting_key.in_(wanted))

    if format == "keyValue":
        rows = (await db.execute(stmt.order_by(Setting.setting_key))).scalars().all()
        return {s.setting_key: s.setting_value for s in rows}

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    rows = (
        await db.execute(stmt.order_by(Setting.setting_key).offset((page - 1) * limit).limit(limit))
    ).scalars().all()

    return SettingPage(
        data=[SettingOut.model_validate(s) for s in rows],
        pagination=Pagination.build(page=page, limit=limit, total_items=total),
    )


async def _upsert(db: AsyncSession, client_id: uuid.UUID, items: List[tuple[str, str, str]]) -> List[SettingOut]:
    """Insert or update (key, value, group) triples inside one client, keyed on setting_key."""
    if not items:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No settings provided")

    keys = [key for key, _, _ in items]
    existing_stmt = scoped_to_client(select(Setting), Setting, client_id).where(Setting.setting_key.in_(keys))
    existing = {s.setting_key: s for s in (await db.execute(existing_stmt)).scalars().all()}

    saved: Dict[str, Setting] = {}
    for key, value, group in items:
        setting = existing.get(key) or saved.get(key)
        if setting is None:
            setting = Setting(client_id=client_id, setting_key=key, setting_value=value, setting_group=group)
            db.add(setting)
        else:
            setting.setting_value = value
            setting.setting_group = group
        saved[key] = setting

    await db.commit()
    for setting in saved.values():
        await db.refresh(setting)
    return [SettingOut.model_validate(s) for s in saved.values()]


@router.post("", response_model=List[SettingOut])
async def upsert_settings(
    payload: SettingsUpsert,
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*READ_ROLES)),
):
    return await _upsert(db, ctx.client_id, payload.normalized())


@router.get("/group/{group}", response_model=Dict[str, str])
async def settings_by_group(
    group: str,
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*READ_ROLES)),
):
    stmt = scoped_to_client(select(Setting), Setting, ctx.client_id).where(Setting.setting_group == group)
    rows = (await db.execute(stmt.order_by(Setting.setting_key))).scalars().all()
    return {s.setting_key: s.setting_value for s in rows}


@router.put("/group/{group}", response_model=List[SettingOut])
async def replace_group_settings(
    group: str,
    payload: SettingsGroupUpsert,
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*READ_ROLES)),
):
    return await _upsert(db, ctx.client_id, payload.normalized(group))


@router.delete("/group/{group}", response_model=SettingsGroupDeleted)
async def delete_group_settings(
    group: str,
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*READ_ROLES)),
):
    stmt = scoped_to_client(delete(Setting), Setting, ctx.client_id).where(Setting.setting_group == group)
    result = await db.execute(stmt)
    await db.commit()
    return SettingsGroupDeleted(group=group, deleted=result.rowcount or 0)


@router.get("/{setting_id}", response_model=SettingOut)
async def get_setting(
    setting_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*READ_ROLES)),
):
    return await get_scoped_or_404(db, Setting, setting_id, ctx.client_id, label="Setting")


@router.patch("/{setting_id}", response_model=SettingOut)
async def update_setting(
    setting_id: uuid.UUID,
    payload: SettingUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*READ_ROLES)),
):
    setting = await get_scoped_or_404(db, Setting, setting_id, ctx.client_id, label="Setting")

    setting.setting_value = as_setting_value(payload.setting_value)
    if payload.setting_group:
        setting.setting_group = payload.setting_group

    await db.commit()
    await db.refresh(setting)
    return setting


@router.delete("/{setting_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_setting(
    setting_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*READ_ROLES)),
):
    setting = await get_scoped_or_404(db, Setting, setting_id, ctx.client_id, label="Setting")

    await db.delete(setting)
    await db.commit()
    return None
