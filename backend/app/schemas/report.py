from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import Pagination


class ReportCreate(BaseModel):
    # client_id is never accepted from the body; it comes from the active client
    model_config = ConfigDict(extra="ignore")

    title: str = Field(..., min_length=1, max_length=255)
    type: str = Field(..., min_length=1, max_length=64)
    report_date: date
    content: Optional[Any] = None
    status: str = Field(default="Draft", max_length=32)


class ReportUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[str] = Field(None, min_length=1, max_length=64)
    report_date: Optional[date] = None
    content: Optional[Any] = None
    status: Optional[str] = Field(None, max_length=32)


class ReportOut(BaseModel):
    id: uuid.UUID
    client_id: uuid.UUID
    title: str
    type: str
    report_date: date
    content: Optional[Any] = None
    status: str
    created_by: Optional[uuid.UUID] = None
    updated_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReportPage(BaseModel):
    data: List[ReportOut]
    pagination: Pagination
