# app/api/v1/tasks.py
from __future__ import annotations

import logging
import uuid
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.access import AccessContext, require_client_context
from app.core.roles import WRITE_ROLES, Role
from app.crud.scoping import get_scoped_or_404, scoped_to_client
from app.db.session import get_db
from app.models.profile import Profile
from app.models.task import Task, TaskActivity, TaskComment
from app.schemas.common import Pagination
from app.schemas.task import (
    CommentCreate,
    CommentOut,
    FeedEntry,
    TaskCreate,
    TaskOut,
    TaskPage,
    TaskPriority,
    TaskStats,
    TaskStatus,
    TaskUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])

TRACKED_FIELDS = ("title", "description", "due_date", "priority", "status", "assignee_id")


# ---------------------------------------------------------
# Helpers
# ---------------------------------------------------------
def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def _log_activity(
    db: AsyncSession,
    task_id: uuid.UUID,
    user_id: uuid.UUID,
    activity_type: str,
    details: Optional[dict[str, Any]] = None,
) -> None:
    db.add(TaskActivity(task_id=task_id, user_id=user_id, activity_type=activity_type, details=details or {}))


async def _ensure_staff_assignee(db: AsyncSession, assignee_id: Optional[uuid.UUID]) -> None:
    if assignee_id is None:
        return
    profile = await db.get(Profile, assignee_id)
    if profile is None or profile.role not in (Role.EMPLOYEE.value, Role.ADMIN.value):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail="assignee_id must reference an employee or admin",
        )


# ---------------------------------------------------------
# Routes
# ---------------------------------------------------------
@router.get("", response_model=TaskPage)
async def list_tasks(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    status_filter: Optional[TaskStatus] = Query(default=None, alias="status"),
    priority: Optional[TaskPriority] = Query(default=None),
    q: Optional[str] = Query(default=None, max_length=200),
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*WRITE_ROLES)),
):
    stmt = scoped_to_client(select(Task), Task, ctx.client_id)
    if status_filter:
        stmt = stmt.where(Task.status == status_filter)
    if priority:
        stmt = stmt.where(Task.priority == priority)
    if q and q.strip():
        stmt = stmt.where(Task.title.ilike(f"%{q.strip()}%"))

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

    stmt = stmt.order_by(Task.created_at.desc(), Task.id).offset((page - 1) * limit).limit(limit)
    rows = (await db.execute(stmt)).scalars().all()

    return TaskPage(
        data=[TaskOut.model_validate(t) for t in rows],
        pagination=Pagination.build(page=page, limit=limit, total_items=total),
    )


@router.get("/stats", response_model=TaskStats)
async def task_stats(
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*WRITE_ROLES)),
):
    stmt = scoped_to_client(select(Task.status, func.count()), Task, ctx.client_id)
    if ctx.role is Role.EMPLOYEE:
        stmt = stmt.where(Task.assignee_id == ctx.user_id)
    stmt = stmt.group_by(Task.status)

    counts = dict((await db.execute(stmt)).all())
    return TaskStats(
        total=sum(counts.values()),
        todo=counts.get("To Do", 0),
        in_progress=counts.get("In Progress", 0),
        done=counts.get("Done", 0),
    )


@router.post("", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
async def create_task(
    payload: TaskCreate,
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*WRITE_ROLES)),
):
    await _ensure_staff_assignee(db, payload.assignee_id)

    task = Task(
        client_id=ctx.client_id,
        title=payload.title.strip(),
        description=payload.description,
        due_date=payload.due_date,
        priority=payload.priority,
        status=payload.status,
        assignee_id=payload.assignee_id,
        created_by=ctx.user_id,
    )
    db.add(task)
    await db.flush()

    _log_activity(db, task.id, ctx.user_id, "created", {"title": task.title})

    await db.commit()
    await db.refresh(task)
    logger.info("Task created: task_id=%s client_id=%s by user_id=%s", task.id, ctx.client_id, ctx.user_id)
    return task


@router.get("/{task_id}", response_model=TaskOut)
async def get_task(
    task_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*WRITE_ROLES)),
):
    return await get_scoped_or_404(db, Task, task_id, ctx.client_id, label="Task")


@router.patch("/{task_id}", response_model=TaskOut)
async def update_task(
    task_id: uuid.UUID,
    payload: TaskUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*WRITE_ROLES)),
):
    task = await get_scoped_or_404(db, Task, task_id, ctx.client_id, label="Task")

    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No data provided")

    for field in ("title", "priority", "status"):
        if field in data and data[field] is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{field} cannot be null")

    if "assignee_id" in data:
        await _ensure_staff_assignee(db, data["assignee_id"])

    for field, value in data.items():
        old = getattr(task, field)
        if old == value:
            continue
        setattr(task, field, value)
        if field in TRACKED_FIELDS:
            _log_activity(
                db,
                task.id,
                ctx.user_id,
                f"{field}_change",
                {"field": field, "old": _jsonable(old), "new": _jsonable(value)},
            )

    await db.commit()
    await db.refresh(task)
    return task


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*WRITE_ROLES)),
):
    task = await get_scoped_or_404(db, Task, task_id, ctx.client_id, label="Task")

    _log_activity(db, task.id, ctx.user_id, "deleted", {"title": task.title})

    comments = (await db.execute(select(TaskComment).where(TaskComment.task_id == task.id))).scalars().all()
    for comment in comments:
        await db.delete(comment)
    await db.delete(task)
    await db.commit()

    logger.info("Task deleted: task_id=%s client_id=%s by user_id=%s", task_id, ctx.client_id, ctx.user_id)
    return None


# =========================================================
# COMMENTS + ACTIVITY
# =========================================================
@router.post("/{task_id}/comments", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
async def add_comment(
    task_id: uuid.UUID,
    payload: CommentCreate,
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*WRITE_ROLES)),
):
    task = await get_scoped_or_404(db, Task, task_id, ctx.client_id, label="Task")

    content = payload.content.strip()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="content cannot be blank")

    comment = TaskComment(task_id=task.id, user_id=ctx.user_id, content=content)
    db.add(comment)
    await db.flush()

    _log_activity(db, task.id, ctx.user_id, "commented", {"comment_id": str(comment.id)})

    await db.commit()
    await db.refresh(comment)
    return comment


@router.get("/{task_id}/activity", response_model=List[FeedEntry])
async def task_activity(
    task_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    ctx: AccessContext = Depends(require_client_context(*WRITE_ROLES)),
):
    task = await get_scoped_or_404(db, Task, task_id, ctx.client_id, label="Task")

    activities = (
        await db.execute(select(TaskActivity).where(TaskActivity.task_id == task.id))
    ).scalars().all()
    comments = (
        await db.execute(select(TaskComment).where(TaskComment.task_id == task.id))
    ).scalars().all()

    feed = [
        FeedEntry(
            id=a.id,
            feed_type="activity",
            user_id=a.user_id,
            created_at=a.created_at,
            activity_type=a.activity_type,
            details=a.details,
        )
        for a in activities
    ] + [
        FeedEntry(id=c.id, feed_type="comment", user_id=c.user_id, created_at=c.created_at, content=c.content)
        for c in comments
    ]
    feed.sort(key=lambda entry: entry.created_at, reverse=True)
    return feed
