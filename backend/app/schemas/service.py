from __future__ import annotations

import re
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.common import Pagination


def slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.strip().lower()).strip("-")


class ServiceCategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    slug: Optional[str] = Field(default=None, max_length=140)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be blank")
        return v

    def resolved_slug(self) -> str:
        return slugify(self.slug or self.name)


class ServiceCategoryOut(BaseModel):
    id: uuid.UUID
    client_id: uuid.UUID
    name: str
    slug: str

    model_config = ConfigDict(from_attributes=True)


class ServiceCreate(BaseModel):
    # client_id is never accepted from the body; it comes from the active client
    model_config = ConfigDict(extra="ignore")

    title: str = Field(..., min_length=1, max_length=255)
    category_id: uuid.UUID
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    description: Optional[str] = None
    currency: str = Field(default="USD", min_length=3, max_length=3)
    duration: Optional[str] = Field(default=None, max_length=64)
    active: bool = True
    featured: bool = False
    image_url: Optional[str] = Field(default=None, max_length=1024)
    metadata: Optional[Dict[str, Any]] = None


class ServiceUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    category_id: Optional[uuid.UUID] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    description: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    duration: Optional[str] = Field(None, max_length=64)
    active: Optional[bool] = None
    featured: Optional[bool] = None
    image_url: Optional[str] = Field(None, max_length=1024)
    metadata: Optional[Dict[str, Any]] = None


class ServiceOut(BaseModel):
    id: uuid.UUID
    client_id: uuid.UUID
    category_id: uuid.UUID
    title: str
    description: Optional[str] = None
    price: Decimal
    currency: str
    duration: Optional[str] = None
    active: bool
    featured: bool
    image_url: Optional[str] = None
    # ORM attribute is `meta`; `metadata` on the row is the table MetaData
    metadata: Optional[Any] = Field(default=None, validation_alias="meta")
    created_by: Optional[uuid.UUID] = None
    updated_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ServicePage(BaseModel):
    data: List[ServiceOut]
    pagination: Pagination
