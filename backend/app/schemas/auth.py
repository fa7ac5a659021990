# backend/app/schemas/auth.py
from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


def _normalize_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return " ".join(value.strip().split())


class MagicCodeRequest(BaseModel):
    email: EmailStr


class MagicCodeVerify(BaseModel):
    email: EmailStr
    code: str = Field(min_length=4, max_length=64)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class ProfileUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    first_name: Optional[str] = Field(default=None, max_length=120)
    last_name: Optional[str] = Field(default=None, max_length=120)
    avatar_url: Optional[str] = Field(default=None, max_length=1024)

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_names(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_name(v)


class ClientSummary(BaseModel):
    id: UUID
    name: str
    domain: Optional[str] = None
    website: Optional[str] = None


class AccessibleClient(ClientSummary):
    is_primary: bool = False


class MeResponse(BaseModel):
    id: UUID
    email: EmailStr
    role: str
    first_name: str = ""
    last_name: str = ""
    avatar_url: Optional[str] = None
    client_id: Optional[UUID] = None

    accessible_clients: List[AccessibleClient] = []
    client_details: Optional[ClientSummary] = None
