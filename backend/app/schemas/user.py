from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from app.core.roles import Role, is_tenant_bound


class UserCreate(BaseModel):
    """
    Provision a principal + profile in one call.
    client role: exactly one client via client_id.
    employee/admin: any number of associations via client_ids (+ primary).
    """

    email: EmailStr
    first_name: str = Field(default="", max_length=120)
    last_name: str = Field(default="", max_length=120)
    role: Role

    client_id: Optional[UUID] = None
    client_ids: List[UUID] = Field(default_factory=list)
    primary_client_id: Optional[UUID] = None

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @model_validator(mode="after")
    def check_client_binding(self) -> "UserCreate":
        if is_tenant_bound(self.role):
            if self.client_id is None:
                raise ValueError("client role requires client_id")
            if self.client_ids or self.primary_client_id is not None:
                raise ValueError("client role cannot take client_ids associations")
        elif self.client_id is not None:
            raise ValueError(f"{self.role.value} role must not set client_id")
        return self


class UserUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    first_name: Optional[str] = Field(default=None, max_length=120)
    last_name: Optional[str] = Field(default=None, max_length=120)
    avatar_url: Optional[str] = Field(default=None, max_length=1024)
    role: Optional[Role] = None
    client_id: Optional[UUID] = None
    is_active: Optional[bool] = None

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class UserOut(BaseModel):
    id: UUID
    email: EmailStr
    is_active: bool
    first_name: str = ""
    last_name: str = ""
    role: str
    client_id: Optional[UUID] = None
    avatar_url: Optional[str] = None
    created_at: datetime


class AssociationOut(BaseModel):
    client_id: UUID
    is_primary: bool
    company_name: Optional[str] = None


class AssociationSyncRequest(BaseModel):
    client_ids: List[UUID] = Field(default_factory=list)
    primary_client_id: Optional[UUID] = None


class SyncResultOut(BaseModel):
    user_id: UUID
    client_ids: List[UUID]
    added: List[UUID]
    removed: List[UUID]
    primary_client_id: Optional[UUID] = None
