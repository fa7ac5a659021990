# app/api/v1/reports.py
from __future__ import annotations

import uuid
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.access import AccessContext, require_client_context
from app.core.roles import ADMIN_ROLES, READ_ROLES, WRITE_ROLES
from app.crud.scoping import get_scoped_or_404, scoped_to_client
from app.db.session import get_db
from app.models.report import Report
from app.schemas.common import Pagination
from app.schemas.report import ReportCreate, ReportOut, ReportPage, ReportUpdate

router = APIRouter(prefix="/reports", tags=["reports"])

SORTABLE_COLUMNS = {
    "report_date": Report.report_date,
    "title": Report.title,
    "type": Report.type,
    "status": Report.status,
    "created_at": Report.created_at,
}


@router.get("", response_model=ReportPage)
async def list_reports(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    type: Optional[str] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    sort_by: str = Query(default="report_date"),
    sort_order: Literal["asc", "desc"] = Query(default="desc"),
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*READ_ROLES)),
):
    column = SORTABLE_COLUMNS.get(sort_by)
    if column is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"sort_by must be one of: {', '.join(sorted(SORTABLE_COLUMNS))}",
        )

    stmt = scoped_to_client(select(Report), Report, ctx.client_id)
    if type:
        stmt = stmt.where(Report.type == type)
    if status_filter:
        stmt = stmt.where(Report.status == status_filter)

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

    stmt = (
        stmt.order_by(column.asc() if sort_order == "asc" else column.desc(), Report.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    rows = (await db.execute(stmt)).scalars().all()

    return ReportPage(
        data=[ReportOut.model_validate(r) for r in rows],
        pagination=Pagination.build(page=page, limit=limit, total_items=total),
    )


@router.post("", response_model=ReportOut, status_code=status.HTTP_201_CREATED)
async def create_report(
    payload: ReportCreate,
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*WRITE_ROLES)),
):
    report = Report(
        client_id=ctx.client_id,
        title=payload.title.strip(),
        type=payload.type,
        report_date=payload.report_date,
        content=payload.content,
        status=payload.status or "Draft",
        created_by=ctx.user_id,
        updated_by=ctx.user_id,
    )
    db.add(report)
    await db.commit()
    await db.refresh(report)
    return report


@router.get("/{report_id}", response_model=ReportOut)
async def get_report(
    report_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*READ_ROLES)),
):
    return await get_scoped_or_404(db, Report, report_id, ctx.client_id, label="Report")


@router.patch("/{report_id}", response_model=ReportOut)
async def update_report(
    report_id: uuid.UUID,
    payload: ReportUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*WRITE_ROLES)),
):
    report = await get_scoped_or_404(db, Report, report_id, ctx.client_id, label="Report")

    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No data provided")

    for field in ("title", "type", "report_date", "status"):
        if field in data and data[field] is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{field} cannot be null")

    for field, value in data.items():
        setattr(report, field, value)
    report.updated_by = ctx.user_id

    await db.commit()
    await db.refresh(report)
    return report


@router.delete("/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_report(
    report_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*ADMIN_ROLES)),
):
    report = await get_scoped_or_404(db, Report, report_id, ctx.client_id, label="Report")

    await db.delete(report)
    await db.commit()
    return None
