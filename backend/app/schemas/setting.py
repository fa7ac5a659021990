from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.schemas.common import Pagination


def as_setting_value(value: Any) -> str:
    return "" if value is None else str(value)


class SettingItem(BaseModel):
    setting_key: str = Field(..., min_length=1, max_length=120)
    setting_value: Any = None
    setting_group: Optional[str] = Field(default=None, max_length=60)


class SettingsUpsert(BaseModel):
    """
    Three accepted shapes:
      {"settings": [{"setting_key": ..., "setting_value": ...}, ...]}
      {"setting_key": ..., "setting_value": ..., "setting_group": ...}
      {"key_values": {...}, "group": ...}
    Any client_id in the body is ignored.
    """

    model_config = ConfigDict(extra="ignore")

    settings: Optional[List[SettingItem]] = None

    setting_key: Optional[str] = Field(default=None, max_length=120)
    setting_value: Any = None
    setting_group: Optional[str] = Field(default=None, max_length=60)

    key_values: Optional[Dict[str, Any]] = None
    group: Optional[str] = Field(default=None, max_length=60)

    @model_validator(mode="after")
    def check_shape(self) -> "SettingsUpsert":
        if self.settings is None and not self.setting_key and self.key_values is None:
            raise ValueError(
                "Provide a `settings` list, single `setting_key`/`setting_value`, or a `key_values` object."
            )
        return self

    def normalized(self) -> List[tuple[str, str, str]]:
        """(key, value, group) triples; values coerced to strings, blank keys dropped."""
        if self.settings is not None:
            items = [
                (s.setting_key.strip(), as_setting_value(s.setting_value), s.setting_group or "general")
                for s in self.settings
            ]
        elif self.setting_key:
            items = [
                (self.setting_key.strip(), as_setting_value(self.setting_value), self.setting_group or "general")
            ]
        else:
            group = self.group or "general"
            items = [(k.strip(), as_setting_value(v), group) for k, v in (self.key_values or {}).items()]
        return [item for item in items if item[0]]


class SettingUpdate(BaseModel):
    setting_value: Any
    setting_group: Optional[str] = Field(default=None, max_length=60)

    @model_validator(mode="after")
    def require_value(self) -> "SettingUpdate":
        if self.setting_value is None:
            raise ValueError("setting_value is required")
        return self


class SettingOut(BaseModel):
    id: uuid.UUID
    client_id: uuid.UUID
    setting_key: str
    setting_value: str
    setting_group: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SettingPage(BaseModel):
    data: List[SettingOut]
    pagination: Pagination


class SettingsGroupUpsert(BaseModel):
    """
    Body for PUT /settings/group/{group}: a `settings` list or a `key_values` object.
    The group always comes from the path.
    """

    model_config = ConfigDict(extra="ignore")

    settings: Optional[List[SettingItem]] = None
    key_values: Optional[Dict[str, Any]] = None

    @model_validator(mode="after")
    def check_shape(self) -> "SettingsGroupUpsert":
        if self.settings is None and self.key_values is None:
            raise ValueError("Provide a `settings` list or a `key_values` object.")
        return self

    def normalized(self, group: str) -> List[tuple[str, str, str]]:
        if self.settings is not None:
            items = [(s.setting_key.strip(), as_setting_value(s.setting_value), group) for s in self.settings]
        else:
            items = [(k.strip(), as_setting_value(v), group) for k, v in (self.key_values or {}).items()]
        return [item for item in items if item[0]]


class SettingsGroupDeleted(BaseModel):
    group: str
    deleted: int
