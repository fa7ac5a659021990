# app/api/v1/services.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.access import AccessContext, require_client_context, require_roles
from app.auth.active_client import resolve_active_client
from app.core.roles import READ_ROLES, WRITE_ROLES
from app.crud.scoping import get_scoped_or_404, scoped_to_client
from app.db.session import get_db
from app.models.profile import Profile
from app.models.service import Service, ServiceCategory
from app.schemas.common import Pagination
from app.schemas.service import (
    ServiceCategoryCreate,
    ServiceCategoryOut,
    ServiceCreate,
    ServiceOut,
    ServicePage,
    ServiceUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/services", tags=["services"])

SORTABLE_COLUMNS = {
    "created_at": Service.created_at,
    "updated_at": Service.updated_at,
    "title": Service.title,
    "price": Service.price,
}


@dataclass(frozen=True)
class ServiceFilters:
    page: int
    limit: int
    featured: Optional[bool]
    active: Optional[bool]
    search: Optional[str]
    category_id: Optional[uuid.UUID]
    sort_by: str
    sort_order: str


def service_filters(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    featured: Optional[bool] = Query(default=None),
    active: Optional[bool] = Query(default=None),
    search: Optional[str] = Query(default=None, max_length=200),
    category_id: Optional[uuid.UUID] = Query(default=None),
    sort_by: str = Query(default="created_at"),
    sort_order: Literal["asc", "desc"] = Query(default="desc"),
) -> ServiceFilters:
    if sort_by not in SORTABLE_COLUMNS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"sort_by must be one of: {', '.join(sorted(SORTABLE_COLUMNS))}",
        )
    return ServiceFilters(page, limit, featured, active, search, category_id, sort_by, sort_order)


async def _page_of_services(db: AsyncSession, client_id: uuid.UUID, filters: ServiceFilters) -> ServicePage:
    stmt = scoped_to_client(select(Service), Service, client_id)
    if filters.featured is not None:
        stmt = stmt.where(Service.featured.is_(filters.featured))
    if filters.active is not None:
        stmt = stmt.where(Service.active.is_(filters.active))
    if filters.category_id is not None:
        stmt = stmt.where(Service.category_id == filters.category_id)
    if filters.search and filters.search.strip():
        pattern = f"%{filters.search.strip()}%"
        stmt = stmt.where(or_(Service.title.ilike(pattern), Service.description.ilike(pattern)))

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

    column = SORTABLE_COLUMNS[filters.sort_by]
    stmt = (
        stmt.order_by(column.asc() if filters.sort_order == "asc" else column.desc(), Service.id)
        .offset((filters.page - 1) * filters.limit)
        .limit(filters.limit)
    )
    rows = (await db.execute(stmt)).scalars().all()

    return ServicePage(
        data=[ServiceOut.model_validate(s) for s in rows],
        pagination=Pagination.build(page=filters.page, limit=filters.limit, total_items=total),
    )


async def _ensure_category_in_client(db: AsyncSession, category_id: uuid.UUID, client_id: uuid.UUID) -> None:
    stmt = scoped_to_client(
        select(ServiceCategory.id).where(ServiceCategory.id == category_id), ServiceCategory, client_id
    )
    if (await db.execute(stmt)).scalar_one_or_none() is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="category_id does not belong to the active client",
        )


# ---------------------------------------------------------
# Categories
# ---------------------------------------------------------
@router.get("/categories", response_model=List[ServiceCategoryOut])
async def list_categories(
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*READ_ROLES)),
):
    stmt = scoped_to_client(select(ServiceCategory), ServiceCategory, ctx.client_id).order_by(ServiceCategory.name)
    return list((await db.execute(stmt)).scalars().all())


@router.post("/categories", response_model=ServiceCategoryOut, status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: ServiceCategoryCreate,
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*WRITE_ROLES)),
):
    slug = payload.resolved_slug()
    if not slug:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="slug cannot be empty")

    clash = scoped_to_client(select(ServiceCategory.id), ServiceCategory, ctx.client_id).where(
        ServiceCategory.slug == slug
    )
    if (await db.execute(clash)).scalar_one_or_none() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Category '{slug}' already exists")

    category = ServiceCategory(client_id=ctx.client_id, name=payload.name, slug=slug)
    db.add(category)
    await db.commit()
    await db.refresh(category)
    return category


# ---------------------------------------------------------
# Services
# ---------------------------------------------------------
@router.get("", response_model=ServicePage)
async def list_services(
    filters: ServiceFilters = Depends(service_filters),
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*READ_ROLES)),
):
    return await _page_of_services(db, ctx.client_id, filters)


@router.get("/client/{client_id}", response_model=ServicePage)
async def list_services_for_client(
    client_id: uuid.UUID,
    filters: ServiceFilters = Depends(service_filters),
    db: AsyncSession = Depends(get_db),
    profile: Profile = Depends(require_roles(*WRITE_ROLES)),
):
    """Staff view of one client's services; the path id gets the same association check as the header."""
    target = await resolve_active_client(db, profile, client_id)
    return await _page_of_services(db, target, filters)


@router.post("", response_model=ServiceOut, status_code=status.HTTP_201_CREATED)
async def create_service(
    payload: ServiceCreate,
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*WRITE_ROLES)),
):
    await _ensure_category_in_client(db, payload.category_id, ctx.client_id)

    data = payload.model_dump()
    meta = data.pop("metadata")
    data["title"] = data["title"].strip()
    data["currency"] = data["currency"].upper()

    service = Service(
        client_id=ctx.client_id,
        meta=meta,
        created_by=ctx.user_id,
        updated_by=ctx.user_id,
        **data,
    )
    db.add(service)
    await db.commit()
    await db.refresh(service)

    logger.info("Service created: service_id=%s client_id=%s by user_id=%s", service.id, ctx.client_id, ctx.user_id)
    return service


@router.get("/{service_id}", response_model=ServiceOut)
async def get_service(
    service_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*READ_ROLES)),
):
    return await get_scoped_or_404(db, Service, service_id, ctx.client_id, label="Service")


@router.patch("/{service_id}", response_model=ServiceOut)
async def update_service(
    service_id: uuid.UUID,
    payload: ServiceUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*READ_ROLES)),
):
    service = await get_scoped_or_404(db, Service, service_id, ctx.client_id, label="Service")

    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No data provided")

    for field in ("title", "category_id", "price", "currency", "active", "featured"):
        if field in data and data[field] is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{field} cannot be null")

    if "category_id" in data and data["category_id"] != service.category_id:
        await _ensure_category_in_client(db, data["category_id"], ctx.client_id)
    if "currency" in data:
        data["currency"] = data["currency"].upper()
    if "metadata" in data:
        data["meta"] = data.pop("metadata")

    for field, value in data.items():
        setattr(service, field, value)
    service.updated_by = ctx.user_id

    await db.commit()
    await db.refresh(service)
    return service


@router.delete("/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_service(
    service_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*READ_ROLES)),
):
    service = await get_scoped_or_404(db, Service, service_id, ctx.client_id, label="Service")

    await db.delete(service)
    await db.commit()
    logger.info("Service deleted: service_id=%s client_id=%s by user_id=%s", service_id, ctx.client_id, ctx.user_id)
    return None
