from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import Pagination

TaskStatus = Literal["To Do", "In Progress", "Done"]
TaskPriority = Literal["Low", "Medium", "High"]


class TaskCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: Optional[date] = None
    priority: TaskPriority = "Medium"
    status: TaskStatus = "To Do"
    assignee_id: Optional[uuid.UUID] = None


class TaskUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: Optional[date] = None
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None
    assignee_id: Optional[uuid.UUID] = None


class TaskOut(BaseModel):
    id: uuid.UUID
    client_id: uuid.UUID
    title: str
    description: Optional[str] = None
    due_date: Optional[date] = None
    priority: str
    status: str
    assignee_id: Optional[uuid.UUID] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TaskPage(BaseModel):
    data: List[TaskOut]
    pagination: Pagination


class TaskStats(BaseModel):
    total: int
    todo: int
    in_progress: int
    done: int


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1)


class CommentOut(BaseModel):
    id: uuid.UUID
    task_id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    content: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FeedEntry(BaseModel):
    id: uuid.UUID
    feed_type: Literal["activity", "comment"]
    user_id: Optional[uuid.UUID] = None
    created_at: datetime
    activity_type: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    content: Optional[str] = None
