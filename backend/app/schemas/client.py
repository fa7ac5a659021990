from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    v = value.strip()
    return v or None


class ClientBase(BaseModel):
    contact_person: Optional[str] = Field(default=None, max_length=200)
    contact_number: Optional[str] = Field(default=None, max_length=40)
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    website: Optional[str] = Field(default=None, max_length=500)
    industry: Optional[str] = Field(default=None, max_length=120)
    domain: Optional[str] = Field(default=None, max_length=255)

    @field_validator("contact_person", "contact_number", "address", "website", "industry", "domain", mode="before")
    @classmethod
    def strip_blank(cls, v):
        return _blank_to_none(v) if isinstance(v, str) else v


class ClientCreate(ClientBase):
    company_name: str = Field(min_length=1, max_length=200)
    active: bool = True

    @field_validator("company_name")
    @classmethod
    def validate_company_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("company_name is required")
        return v


class ClientUpdate(ClientBase):
    company_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    active: Optional[bool] = None


class ClientOut(BaseModel):
    id: UUID
    company_name: str
    contact_person: Optional[str] = None
    contact_number: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    industry: Optional[str] = None
    domain: Optional[str] = None
    active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
