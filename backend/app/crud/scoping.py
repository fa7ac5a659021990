# app/crud/scoping.py
from __future__ import annotations

import uuid
from typing import Any, Type, TypeVar

from fastapi import HTTPException, status
from sqlalchemy import Delete, Select, select
from sqlalchemy.ext.asyncio import AsyncSession

ModelT = TypeVar("ModelT")
StmtT = TypeVar("StmtT", Select, Delete)


def scoped_to_client(stmt: StmtT, model: Any, client_id: uuid.UUID) -> StmtT:
    """
    Add the mandatory tenant predicate to a query on a client-scoped model.
    Models without a client_id column are a programming error here.
    """
    column = getattr(model, "client_id", None)
    if column is None:
        raise TypeError(f"{getattr(model, '__name__', model)!r} is not client-scoped")
    return stmt.where(column == client_id)


async def get_scoped_or_404(
    db: AsyncSession,
    model: Type[ModelT],
    object_id: uuid.UUID,
    client_id: uuid.UUID,
    *,
    label: str = "Item",
) -> ModelT:
    """Fetch one row by id inside the active client; other tenants' rows look absent."""
    stmt = scoped_to_client(select(model).where(model.id == object_id), model, client_id)
    obj = (await db.execute(stmt)).scalars().first()
    if obj is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found")
    return obj
